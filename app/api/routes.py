from fastapi import APIRouter

from app.api.uploads import router as uploads_router

router = APIRouter()

router.include_router(uploads_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Tandem chat service"}
