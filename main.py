import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel, EmailStr
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings, configure_logging
from database import Database, serialize_doc, to_object_id
from middleware import RequestLoggingMiddleware
from schemas import CartItem as CartItemSchema, Product as ProductSchema, User as UserSchema
from security import Forbidden, hash_password, require_admin, verify_password
from storage import ImageUploader, S3ImageUploader, StorageError, UnsupportedImageError, image_extension

logger = logging.getLogger("shop")

router = APIRouter()


# Dependencies

def get_db(request: Request) -> Database:
    return request.app.state.database


def get_uploader(request: Request) -> ImageUploader:
    return request.app.state.uploader


def message(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": text})


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(doc)
    # Never send password hash
    user.pop("password_hash", None)
    return user


# Request models
class SignupInput(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password: Optional[str] = None


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateInput(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    address: Optional[str] = None


class CartInput(BaseModel):
    user_id: Optional[str] = None
    product_id: Optional[str] = None


# Routes
@router.get("/", response_class=HTMLResponse)
def read_root():
    return "<h1>Backend is working!</h1>"


@router.get("/ping")
def ping():
    return {"message": "Backend awake!"}


@router.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if db.url else "❌ Not Set",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db.db is not None:
            response["collections"] = db.collection_names()
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Users
@router.post("/signup", status_code=201)
def signup(payload: Optional[SignupInput] = None, db: Database = Depends(get_db)):
    payload = payload or SignupInput()
    if not payload.email:
        return message(400, "Missing name, email or password")
    email = payload.email.lower()
    if db.find_document("user", {"email": email}):
        return PlainTextResponse("User already exists", status_code=400)
    if not payload.name or not payload.password:
        return message(400, "Missing name, email or password")
    user = UserSchema(name=payload.name, email=email, password_hash=hash_password(payload.password))
    try:
        created = db.create_document("user", user)
    except DuplicateKeyError:
        # Lost the race against a concurrent signup; the unique index caught it
        return PlainTextResponse("User already exists", status_code=400)
    logger.info("Created user %s", created["_id"])
    return public_user(created)


@router.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db)):
    user = db.find_document("user", {"email": payload.email.lower()})
    if not user:
        return PlainTextResponse("User not found", status_code=404)
    if not verify_password(payload.password, user.get("password_hash", "")):
        return PlainTextResponse("Incorrect password", status_code=400)
    return {
        "message": "User logged in",
        "user": {"id": str(user["_id"]), "name": user["name"], "email": user["email"]},
    }


@router.get("/profile/{email}")
def get_profile(email: str, db: Database = Depends(get_db)):
    user = db.find_document("user", {"email": email.lower()})
    if not user:
        return PlainTextResponse("User not found", status_code=404)
    return public_user(user)


@router.put("/profile/update")
def update_profile(payload: ProfileUpdateInput, db: Database = Depends(get_db)):
    values = payload.model_dump(include={"name", "address"}, exclude_none=True)
    user = db.update_document("user", {"email": payload.email.lower()}, values)
    if not user:
        return PlainTextResponse("User not found", status_code=404)
    return public_user(user)


# Admin
@router.get("/admin", response_class=PlainTextResponse, dependencies=[Depends(require_admin)])
def admin_panel():
    return "Welcome to the Admin Panel!"


@router.post("/admin", status_code=201, dependencies=[Depends(require_admin)])
def add_product(
    pro_name: Optional[str] = Form(default=None),
    pro_price: Optional[float] = Form(default=None, ge=0),
    pro_image: Optional[UploadFile] = File(default=None),
    db: Database = Depends(get_db),
    uploader: ImageUploader = Depends(get_uploader),
):
    if pro_image is None or not pro_image.filename:
        return message(400, "Image required")
    try:
        image_extension(pro_image.filename)
    except UnsupportedImageError as e:
        return message(400, str(e))
    if not pro_name or pro_price is None:
        return message(400, "Missing pro_name or pro_price")

    image_url = uploader.upload(pro_image.file.read(), pro_image.filename)
    product = ProductSchema(product_name=pro_name, product_price=pro_price, product_image=image_url)
    created = db.create_document("product", product)
    logger.info("Created product %s", created["_id"])
    return serialize_doc(created)


# Products
@router.get("/products")
def list_products(db: Database = Depends(get_db)) -> List[dict]:
    return [serialize_doc(d) for d in db.get_documents("product")]


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    obj_id = to_object_id(product_id)
    product = db.find_document("product", {"_id": obj_id}) if obj_id else None
    if not product:
        return message(404, "Product not found")
    return serialize_doc(product)


# Cart
@router.post("/cart")
def add_to_cart(payload: Optional[CartInput] = None, db: Database = Depends(get_db)):
    payload = payload or CartInput()
    if not payload.user_id or not payload.product_id:
        return message(400, "Missing user_id or product_id")
    user_id = to_object_id(payload.user_id)
    product_id = to_object_id(payload.product_id)
    if user_id is None or product_id is None:
        return message(400, "Invalid user_id or product_id")

    # No merge with an existing line: every add is a new cart item
    item = CartItemSchema(user_id=user_id, product_id=product_id, quantity=1)
    new_item = db.create_document("cartitem", item)
    return {"message": "Item added to cart", "newItem": serialize_doc(new_item)}


@router.get("/viewcart")
def view_cart(user_id: Optional[str] = Query(default=None, alias="userId"), db: Database = Depends(get_db)):
    if not user_id:
        return message(400, "Missing userId")
    obj_id = to_object_id(user_id)
    if obj_id is None:
        return []
    items = db.get_documents("cartitem", {"user_id": obj_id})
    # attach product details
    product_ids = list({it["product_id"] for it in items})
    products = {}
    if product_ids:
        products = {p["_id"]: p for p in db.get_documents("product", {"_id": {"$in": product_ids}})}
    return [serialize_doc({**it, "product_id": products.get(it["product_id"])}) for it in items]


# Error handlers

def handle_forbidden(request: Request, exc: Forbidden) -> JSONResponse:
    return message(403, exc.message)


def handle_internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return message(500, str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    database: Database = app.state.database
    # A failed connection is logged but does not stop the server
    if database.connect():
        database.ensure_indexes()
    logger.info("Backend running on port %s", settings.port)
    yield
    database.close()


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None,
               uploader: Optional[ImageUploader] = None) -> FastAPI:
    settings = settings or Settings()
    if database is None:
        database = Database(settings.database_url, settings.database_name)
    if uploader is None:
        uploader = S3ImageUploader(
            bucket=settings.aws_bucket_name,
            region=settings.aws_region,
            folder=settings.upload_folder,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )

    app = FastAPI(title="Shop API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.uploader = uploader

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Key"],
    )
    app.add_exception_handler(Forbidden, handle_forbidden)
    app.add_exception_handler(PyMongoError, handle_internal_error)
    app.add_exception_handler(StorageError, handle_internal_error)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
