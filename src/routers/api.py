from fastapi import APIRouter

from routers import connection, control, plant

router = APIRouter()

# include sub-routers
router.include_router(plant.router)
router.include_router(control.router)
router.include_router(connection.router)
