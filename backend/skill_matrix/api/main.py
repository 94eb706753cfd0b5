from fastapi import APIRouter

from skill_matrix.api.routes import (
    access,
    login,
    matrix,
    organization,
    reports,
    users,
    utils,
)
from skill_matrix.api.websockets import realtime

api_router = APIRouter()
api_router.include_router(login.router)
api_router.include_router(users.router)
api_router.include_router(utils.router)
api_router.include_router(access.router)

# Skill matrix
api_router.include_router(organization.router)
api_router.include_router(matrix.router)
api_router.include_router(reports.router)

# WebSocket routes
api_router.include_router(realtime.router)
