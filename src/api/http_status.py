from fastapi import status

# starlette renamed 422; only touch the deprecated name on releases without the new one
HTTP_422_UNPROCESSABLE = (
    getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", None)
    or status.HTTP_422_UNPROCESSABLE_ENTITY
)
