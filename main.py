import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException

import auth
import database
import report
from database import POTIONS, get_db, get_documents, sanitize, to_obj_id
from errors import NotFound, PotionsError, StoreFailure
from schemas import Potion

logger = logging.getLogger(__name__)


# Request Models
class Credentials(BaseModel):
    name: str
    password: str


# Auth Routes
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])


@auth_router.post("/register", status_code=201)
def register(payload: Credentials, db: Database = Depends(get_db)):
    user_id = auth.register(db, payload.name, payload.password)
    return {"message": "User created", "id": user_id}


@auth_router.post("/login")
def login(payload: Credentials, response: Response, db: Database = Depends(get_db)):
    token = auth.login(db, payload.name, payload.password)
    auth.set_session_cookie(response, token)
    return {"message": "Logged in"}


@auth_router.get("/logout")
def logout(response: Response):
    auth.logout(response)
    return {"message": "Logged out"}


@auth_router.get("/me")
def me(current_user: auth.SessionUser = Depends(auth.get_current_user)):
    return current_user.to_dict()


# Potion Routes
potions_router = APIRouter(prefix="/potions", tags=["Potions"])


@potions_router.get("")
def list_potions(db: Database = Depends(get_db)):
    return get_documents(db, POTIONS)


@potions_router.get("/names")
def list_potion_names(db: Database = Depends(get_db)):
    return [p.get("name") for p in db[POTIONS].find({}, {"name": 1})]


@potions_router.get("/vendor/{vendor_id}")
def list_vendor_potions(vendor_id: str, db: Database = Depends(get_db)):
    return get_documents(db, POTIONS, {"vendor_id": vendor_id})


@potions_router.get("/price-range")
def list_potions_in_price_range(
    min_price: float = Query(..., alias="min", description="Minimum price"),
    max_price: float = Query(..., alias="max", description="Maximum price"),
    db: Database = Depends(get_db),
):
    return get_documents(db, POTIONS, {"price": {"$gte": min_price, "$lte": max_price}})


@potions_router.get("/{potion_id}")
def get_potion(potion_id: str, db: Database = Depends(get_db)):
    doc = db[POTIONS].find_one({"_id": to_obj_id(potion_id)})
    if not doc:
        raise NotFound("Potion not found")
    return sanitize(doc)


@potions_router.post("", status_code=201)
def create_potion(payload: Potion, db: Database = Depends(get_db),
                  current_user: auth.SessionUser = Depends(auth.get_current_user)):
    doc = payload.model_dump(exclude_unset=True)
    res = db[POTIONS].insert_one(doc)
    logger.info("Potion %s created by %s", res.inserted_id, current_user.user_name)
    return sanitize(doc)


@potions_router.put("/{potion_id}")
def replace_potion(potion_id: str, payload: Potion, db: Database = Depends(get_db),
                   current_user: auth.SessionUser = Depends(auth.get_current_user)):
    oid = to_obj_id(potion_id)
    doc = payload.model_dump(exclude_unset=True)
    res = db[POTIONS].replace_one({"_id": oid}, doc)
    if res.matched_count == 0:
        raise NotFound("Potion not found")
    logger.info("Potion %s replaced by %s", potion_id, current_user.user_name)
    return {"id": potion_id, **doc}


@potions_router.delete("/{potion_id}", status_code=204)
def delete_potion(potion_id: str, db: Database = Depends(get_db),
                  current_user: auth.SessionUser = Depends(auth.get_current_user)):
    res = db[POTIONS].delete_one({"_id": to_obj_id(potion_id)})
    if res.deleted_count == 0:
        raise NotFound("Potion not found")
    logger.info("Potion %s deleted by %s", potion_id, current_user.user_name)
    return Response(status_code=204)


# Analytics Routes
analytics_router = APIRouter(prefix="/analytics", tags=["Analytics"])


@analytics_router.get("/distinct-categories")
def distinct_categories(db: Database = Depends(get_db)):
    return report.distinct_category_count(db[POTIONS])


@analytics_router.get("/average-score-by-vendor")
def average_score_by_vendor(db: Database = Depends(get_db)):
    return report.average_score_by_vendor(db[POTIONS])


@analytics_router.get("/average-score-by-category")
def average_score_by_category(db: Database = Depends(get_db)):
    return report.average_score_by_category(db[POTIONS])


@analytics_router.get("/strength-flavor-ratio")
def strength_flavor_ratio(db: Database = Depends(get_db)):
    return report.strength_flavor_ratio(db[POTIONS])


@analytics_router.get("/search")
def search(
    groupType: Optional[str] = Query(None, description="vendor_id or categories"),
    metric: Optional[str] = Query(None, description="avg, sum or count"),
    field: Optional[str] = Query(None, description="score, price, ratings.strength or ratings.flavor"),
    db: Database = Depends(get_db),
):
    return report.build_report(
        db[POTIONS],
        report.parse_group_by(groupType),
        report.parse_metric(metric),
        report.parse_field(field),
    )


# Error handlers: every failure leaves as {"error": message}
async def potions_error_handler(request: Request, exc: PotionsError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return JSONResponse(status_code=400, content={"error": "; ".join(problems)})


async def store_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return await potions_error_handler(request, StoreFailure(str(exc)))


def create_app(db: Optional[Database] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is None:
            app.state.db = database.connect()
        database.ensure_indexes(app.state.db)
        yield

    app = FastAPI(title="Potions API", lifespan=lifespan)
    app.state.db = db
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PotionsError, potions_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)

    app.include_router(auth_router)
    app.include_router(potions_router)
    app.include_router(analytics_router)

    @app.get("/")
    def root():
        return {"message": "Potions API running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
