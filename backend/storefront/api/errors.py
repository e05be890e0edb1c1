from fastapi import HTTPException


def to_http(exc: Exception) -> HTTPException:
    """Map a service exception (anything carrying a `code`) to an HTTP error."""
    code = getattr(exc, "code", "ERROR")
    status = 404 if code.endswith("NOT_FOUND") else 400
    detail = {"code": code, "message": str(exc)}
    product_id = getattr(exc, "product_id", None)
    if product_id is not None:
        detail["product_id"] = product_id
    return HTTPException(status_code=status, detail=detail)
