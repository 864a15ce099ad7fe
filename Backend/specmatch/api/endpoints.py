from fastapi import APIRouter

from specmatch.api.routes import log, process, result, search, status, submit

router = APIRouter()

router.include_router(submit.router)
router.include_router(process.router)
router.include_router(status.router)
router.include_router(result.router)
router.include_router(search.router)
router.include_router(log.router)
