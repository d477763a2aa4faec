import json
import logging
import os
import re
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Dict, List, Literal, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

from bson import ObjectId  # noqa: E402
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from fastapi.security import OAuth2PasswordBearer  # noqa: E402
from jose import JWTError, jwt  # noqa: E402
from passlib.context import CryptContext  # noqa: E402
from pydantic import BaseModel, EmailStr, Field, ValidationError  # noqa: E402
from pymongo.errors import DuplicateKeyError  # noqa: E402
from starlette.concurrency import run_in_threadpool  # noqa: E402
from starlette.datastructures import UploadFile  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402

import media  # noqa: E402
from database import (  # noqa: E402
    create_document,
    db,
    ensure_indexes,
    get_documents,
    now,
    paginate,
    populate,
    serialize_doc,
    to_object_id,
    update_document,
)
from schemas import (  # noqa: E402
    SETTINGS_PUBLIC_FIELDS,
    Admin,
    BannerCreate,
    BannerUpdate,
    CategoryCreate,
    CategoryUpdate,
    ComboCreate,
    ComboUpdate,
    ContactCreate,
    ContactReply,
    ContactStatusUpdate,
    OrderCreate,
    OrderStatus,
    OrderType,
    OrderUpdate,
    ProductCreate,
    ProductImage,
    ProductUpdate,
    Role,
    SettingsUpdate,
    normalize_category,
    normalize_combo,
    normalize_product,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("furniture_store")

# Auth settings
SECRET_KEY = os.getenv("SECRET_KEY", "secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")
    if origin.strip()
]

MAX_PRODUCT_IMAGES = 5
SETTINGS_KEY = "site"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes()
    create_bootstrap_admin()
    yield


app = FastAPI(title="Furniture Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling

def field_errors(errors) -> List[Dict[str, str]]:
    out = []
    for err in errors:
        loc = list(err.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        out.append({"field": ".".join(str(part) for part in loc), "message": err.get("msg", "Invalid value")})
    return out


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "errors": field_errors(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=400, content={"message": "Duplicate value for a unique field"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"message": "Something went wrong!"}
    if ENVIRONMENT == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Request helpers

async def read_payload(request: Request, json_fields: Tuple[str, ...] = ()) -> Tuple[dict, Dict[str, List[UploadFile]]]:
    """
    Read a write request as (fields, files). JSON bodies carry no files;
    multipart and urlencoded forms may carry JSON-encoded sub-fields, which are
    decoded here. A sub-field that is not valid JSON raises and ends up as a 500.
    """
    if request.headers.get("content-type", "").startswith("application/json"):
        body = await request.json()
        if not isinstance(body, dict):
            raise RequestValidationError([{"loc": ("body",), "msg": "Expected a JSON object", "type": "dict_type"}])
        return body, {}

    form = await request.form()
    data, files = {}, {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if value.filename:
                files.setdefault(key, []).append(value)
        else:
            data[key] = value
    for key in json_fields:
        if isinstance(data.get(key), str):
            data[key] = json.loads(data[key])
    return data, files


def validate(model, data):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())


def get_or_404(collection_name: str, doc_id: str, message: str) -> dict:
    oid = to_object_id(doc_id)
    doc = db[collection_name].find_one({"_id": oid}) if oid else None
    if not doc:
        raise HTTPException(status_code=404, detail=message)
    return doc


def upload_first(files: Dict[str, List[UploadFile]], field: str, folder: str) -> Optional[dict]:
    uploads = files.get(field)
    if not uploads:
        return None
    return media.upload_image(uploads[0].file, folder)


def public_id_of(doc: Optional[dict]) -> Optional[str]:
    return ((doc or {}).get("image") or {}).get("public_id")


# Auth

class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    issued = now()
    expire = issued + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": issued, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def admin_summary(admin: dict) -> dict:
    return {
        "id": str(admin["_id"]),
        "email": admin.get("email"),
        "name": admin.get("name"),
        "role": admin.get("role"),
    }


def get_current_admin(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    admin_id = to_object_id(payload.get("sub"))
    if admin_id is None:
        raise credentials_exception
    admin = db["admin"].find_one({"_id": admin_id})
    if not admin:
        raise credentials_exception
    return admin


def create_bootstrap_admin():
    if db is None or not ADMIN_EMAIL or not ADMIN_PASSWORD:
        return
    try:
        if db["admin"].find_one({"email": ADMIN_EMAIL.lower()}):
            logger.info("Admin already exists")
            return
        admin = Admin(
            email=ADMIN_EMAIL,
            password_hash=get_password_hash(ADMIN_PASSWORD),
            name="Admin",
            role=Role.super_admin,
        )
        create_document("admin", admin)
        logger.info("Admin created successfully")
    except Exception:
        logger.exception("Error creating admin")


@app.post("/api/auth/login")
def login(payload: LoginPayload):
    admin = db["admin"].find_one({"email": payload.email.lower()})
    if not admin or not verify_password(payload.password, admin["password_hash"]):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    db["admin"].update_one({"_id": admin["_id"]}, {"$set": {"last_login": now()}})
    token = create_access_token(data={"sub": str(admin["_id"])})
    return {"token": token, "admin": admin_summary(admin)}


@app.get("/api/auth/me")
def me(admin=Depends(get_current_admin)):
    return {"admin": admin_summary(admin)}


@app.post("/api/auth/logout")
def logout(admin=Depends(get_current_admin)):
    # Tokens are stateless; the client drops its copy
    return {"message": "Logged out successfully"}


# Categories

@app.get("/api/categories")
def list_categories():
    pipeline = [
        {"$match": {"is_active": True}},
        {"$lookup": {"from": "product", "localField": "_id", "foreignField": "category", "as": "products"}},
        {"$addFields": {"product_count": {"$size": "$products"}}},
        {"$project": {"products": 0}},
        {"$sort": {"sort_order": 1, "name": 1}},
    ]
    return serialize_doc(list(db["category"].aggregate(pipeline)))


@app.get("/api/categories/{slug}")
def get_category(slug: str):
    category = db["category"].find_one({"slug": slug, "is_active": True})
    if not category:
        raise HTTPException(404, "Category not found")
    return serialize_doc(category)


def save_new_category(category: CategoryCreate, files: Dict[str, List[UploadFile]]) -> dict:
    if db["category"].find_one({"name": category.name}):
        raise HTTPException(400, "Category already exists")

    doc = normalize_category(category.model_dump())
    image = upload_first(files, "image", "categories")
    if image:
        doc["image"] = image
    try:
        category_id = create_document("category", doc)
    except DuplicateKeyError:
        # name or slug taken
        media.discard_images([public_id_of(doc)])
        raise HTTPException(400, "Category already exists")
    return serialize_doc(db["category"].find_one({"_id": ObjectId(category_id)}))


@app.post("/api/categories", status_code=201)
async def create_category(request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request)
    category = validate(CategoryCreate, data)
    return await run_in_threadpool(save_new_category, category, files)


@app.put("/api/categories/{category_id}")
async def update_category(category_id: str, request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request)
    changes = validate(CategoryUpdate, data).model_dump(exclude_unset=True, exclude_none=True)
    return await run_in_threadpool(save_category_changes, category_id, changes, files)


def save_category_changes(category_id: str, changes: dict, files: Dict[str, List[UploadFile]]) -> dict:
    category = get_or_404("category", category_id, "Category not found")
    normalize_category(changes, category)

    image = upload_first(files, "image", "categories")
    if image:
        changes["image"] = image
    try:
        updated = update_document("category", category["_id"], changes)
    except DuplicateKeyError:
        media.discard_images([public_id_of(changes)])
        raise HTTPException(400, "Category already exists")
    if image:
        media.discard_images([public_id_of(category)])
    return serialize_doc(updated)


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, admin=Depends(get_current_admin)):
    # Products keep their (now dangling) category reference
    category = get_or_404("category", category_id, "Category not found")
    db["category"].delete_one({"_id": category["_id"]})
    media.discard_images([public_id_of(category)])
    return {"message": "Category deleted successfully"}


# Products

PRODUCT_JSON_FIELDS = ("dimensions", "materials", "offers", "combos")
SortOrder = Literal["asc", "desc"]
ProductSort = Literal["created_at", "updated_at", "name", "price", "rating", "sort_order", "stock_quantity"]


def product_detail(product_id: ObjectId) -> dict:
    product = db["product"].find_one({"_id": product_id})
    populate([product], "category", "category", ["name", "slug"])
    return product


def product_refs(doc: dict) -> dict:
    if doc.get("category") is not None:
        doc["category"] = ObjectId(doc["category"])
    if doc.get("combos") is not None:
        doc["combos"] = [ObjectId(c) for c in doc["combos"]]
    return doc


def upload_product_images(files: Dict[str, List[UploadFile]], alt: str) -> List[dict]:
    uploads = files.get("images", [])
    if len(uploads) > MAX_PRODUCT_IMAGES:
        raise RequestValidationError(
            [{"loc": ("images",), "msg": f"At most {MAX_PRODUCT_IMAGES} images are allowed", "type": "value_error"}]
        )
    images = []
    try:
        for upload in uploads:
            images.append(ProductImage(alt=alt, **media.upload_image(upload.file, "products")).model_dump())
    except Exception:
        media.discard_images(img["public_id"] for img in images)
        raise
    return images


@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    new_products: bool = Query(False, alias="newProducts"),
    top_rated: bool = Query(False, alias="topRated"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    sort_by: ProductSort = Query("created_at", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
):
    query = {"is_active": True}
    if category:
        query["category"] = to_object_id(category) or category
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if new_products:
        query["is_new_product"] = True
    if top_rated:
        query["is_top_rated"] = True

    result = paginate("product", query, page, limit, sort_by, sort_order)
    populate(result["items"], "category", "category", ["name", "slug"])
    return serialize_doc(result)


@app.get("/api/products/{slug}")
def get_product(slug: str):
    product = db["product"].find_one({"slug": slug, "is_active": True})
    if not product:
        raise HTTPException(404, "Product not found")
    populate([product], "category", "category", ["name", "slug"])
    return serialize_doc(product)


@app.post("/api/products", status_code=201)
async def create_product(request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request, PRODUCT_JSON_FIELDS)
    data.pop("images", None)
    product = validate(ProductCreate, data)
    return await run_in_threadpool(save_new_product, product, files)


@app.put("/api/products/{product_id}")
async def update_product(product_id: str, request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request, PRODUCT_JSON_FIELDS)
    data.pop("images", None)
    changes = validate(ProductUpdate, data).model_dump(exclude_unset=True, exclude_none=True)
    return await run_in_threadpool(save_product_changes, product_id, changes, files)


def save_new_product(product: ProductCreate, files: Dict[str, List[UploadFile]]) -> dict:
    doc = product_refs(normalize_product(product.model_dump()))
    doc["images"] = upload_product_images(files, doc["name"])
    try:
        product_id = create_document("product", doc)
    except DuplicateKeyError:
        media.discard_images(img["public_id"] for img in doc["images"])
        raise HTTPException(400, "A product with this name already exists")
    return serialize_doc(product_detail(ObjectId(product_id)))


def save_product_changes(product_id: str, changes: dict, files: Dict[str, List[UploadFile]]) -> dict:
    product = get_or_404("product", product_id, "Product not found")
    changes = product_refs(normalize_product(changes, product))

    new_images = upload_product_images(files, changes.get("name", product["name"]))
    if new_images:
        changes["images"] = (product.get("images") or []) + new_images
    try:
        update_document("product", product["_id"], changes)
    except DuplicateKeyError:
        media.discard_images(img["public_id"] for img in new_images)
        raise HTTPException(400, "A product with this name already exists")
    return serialize_doc(product_detail(product["_id"]))


@app.delete("/api/products/{product_id}/images/{image_id}")
def delete_product_image(product_id: str, image_id: str, admin=Depends(get_current_admin)):
    product = get_or_404("product", product_id, "Product not found")
    image = next((img for img in product.get("images") or [] if img.get("id") == image_id), None)
    if image is None:
        raise HTTPException(404, "Image not found")

    db["product"].update_one(
        {"_id": product["_id"]},
        {"$pull": {"images": {"id": image_id}}, "$set": {"updated_at": now()}},
    )
    media.discard_images([image.get("public_id")])
    return {"message": "Image deleted successfully"}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, admin=Depends(get_current_admin)):
    product = get_or_404("product", product_id, "Product not found")
    db["product"].delete_one({"_id": product["_id"]})
    media.discard_images(img.get("public_id") for img in product.get("images") or [])
    return {"message": "Product deleted successfully"}


# Combos

COMBO_PRODUCT_FIELDS = ["name", "price", "images"]


def combo_detail(combo_id: ObjectId) -> dict:
    combo = db["combo"].find_one({"_id": combo_id})
    populate([combo], "products.product", "product", COMBO_PRODUCT_FIELDS)
    return combo


def combo_refs(doc: dict) -> dict:
    for entry in doc.get("products") or []:
        entry["product"] = ObjectId(entry["product"])
    return doc


@app.get("/api/combos")
def list_combos():
    # valid_until is stored as naive UTC
    current = now().replace(tzinfo=None)
    combos = get_documents(
        "combo",
        {"is_active": True, "$or": [{"valid_until": {"$gte": current}}, {"valid_until": None}]},
        sort=[("created_at", -1)],
    )
    populate(combos, "products.product", "product", COMBO_PRODUCT_FIELDS)
    return serialize_doc(combos)


@app.post("/api/combos", status_code=201)
async def create_combo(request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request, ("products",))
    combo = validate(ComboCreate, data)
    return await run_in_threadpool(save_new_combo, combo, files)


@app.put("/api/combos/{combo_id}")
async def update_combo(combo_id: str, request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request, ("products",))
    changes = validate(ComboUpdate, data).model_dump(exclude_unset=True, exclude_none=True)
    return await run_in_threadpool(save_combo_changes, combo_id, changes, files)


def save_new_combo(combo: ComboCreate, files: Dict[str, List[UploadFile]]) -> dict:
    doc = combo_refs(normalize_combo(combo.model_dump()))
    image = upload_first(files, "image", "combos")
    if image:
        doc["image"] = image
    combo_id = create_document("combo", doc)
    return serialize_doc(combo_detail(ObjectId(combo_id)))


def save_combo_changes(combo_id: str, changes: dict, files: Dict[str, List[UploadFile]]) -> dict:
    combo = get_or_404("combo", combo_id, "Combo not found")
    changes = combo_refs(normalize_combo(changes, combo))

    image = upload_first(files, "image", "combos")
    if image:
        changes["image"] = image
    update_document("combo", combo["_id"], changes)
    if image:
        media.discard_images([public_id_of(combo)])
    return serialize_doc(combo_detail(combo["_id"]))


@app.delete("/api/combos/{combo_id}")
def delete_combo(combo_id: str, admin=Depends(get_current_admin)):
    combo = get_or_404("combo", combo_id, "Combo not found")
    db["combo"].delete_one({"_id": combo["_id"]})
    media.discard_images([public_id_of(combo)])
    return {"message": "Combo deleted successfully"}


# Orders

ORDER_PRODUCT_FIELDS = ["name", "price", "images"]
OrderSort = Literal["created_at", "updated_at", "total_amount", "status"]


def order_detail(order_id: ObjectId, with_processor: bool = False) -> dict:
    order = db["order"].find_one({"_id": order_id})
    populate([order], "items.product", "product", ORDER_PRODUCT_FIELDS)
    if with_processor:
        populate([order], "processed_by", "admin", ["name", "email"])
    return order


@app.post("/api/orders", status_code=201)
def create_order(payload: OrderCreate):
    doc = payload.model_dump()
    for item in doc["items"]:
        item["product"] = ObjectId(item["product"])
    doc["status"] = OrderStatus.pending.value
    doc["whatsapp_sent"] = False
    doc["processed_at"] = None
    doc["processed_by"] = None
    order_id = create_document("order", doc)
    return serialize_doc(order_detail(ObjectId(order_id)))


@app.get("/api/orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    order_type: Optional[OrderType] = Query(None, alias="orderType"),
    sort_by: OrderSort = Query("created_at", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    admin=Depends(get_current_admin),
):
    query = {}
    if status:
        query["status"] = status.value
    if order_type:
        query["order_type"] = order_type.value

    result = paginate("order", query, page, limit, sort_by, sort_order)
    populate(result["items"], "items.product", "product", ORDER_PRODUCT_FIELDS)
    return serialize_doc(result)


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, admin=Depends(get_current_admin)):
    order = get_or_404("order", order_id, "Order not found")
    return serialize_doc(order_detail(order["_id"], with_processor=True))


@app.put("/api/orders/{order_id}")
def update_order(order_id: str, payload: OrderUpdate, admin=Depends(get_current_admin)):
    order = get_or_404("order", order_id, "Order not found")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    new_status = changes.get("status")
    if new_status and new_status != OrderStatus.pending.value:
        changes["processed_at"] = now()
        changes["processed_by"] = admin["_id"]
    update_document("order", order["_id"], changes)
    return serialize_doc(order_detail(order["_id"], with_processor=True))


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, admin=Depends(get_current_admin)):
    order = get_or_404("order", order_id, "Order not found")
    db["order"].delete_one({"_id": order["_id"]})
    return {"message": "Order deleted successfully"}


# Contact messages

ContactSort = Literal["created_at", "updated_at", "name", "status"]


@app.post("/api/contact", status_code=201)
def submit_contact(payload: ContactCreate):
    doc = payload.model_dump()
    doc.update({"status": "new", "reply": None, "replied_at": None, "replied_by": None})
    contact_id = create_document("contact", doc)
    return {"message": "Contact form submitted successfully", "id": contact_id}


@app.get("/api/contact")
def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[Literal["new", "replied", "resolved"]] = None,
    sort_by: ContactSort = Query("created_at", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    admin=Depends(get_current_admin),
):
    query = {"status": status} if status else {}
    result = paginate("contact", query, page, limit, sort_by, sort_order)
    populate(result["items"], "replied_by", "admin", ["name", "email"])
    return serialize_doc(result)


@app.put("/api/contact/{contact_id}/reply")
def reply_contact(contact_id: str, payload: ContactReply, admin=Depends(get_current_admin)):
    contact = get_or_404("contact", contact_id, "Contact message not found")
    updated = update_document("contact", contact["_id"], {
        "reply": payload.reply,
        "status": "replied",
        "replied_at": now(),
        "replied_by": admin["_id"],
    })
    populate([updated], "replied_by", "admin", ["name", "email"])
    return serialize_doc(updated)


@app.put("/api/contact/{contact_id}/status")
def update_contact_status(contact_id: str, payload: ContactStatusUpdate, admin=Depends(get_current_admin)):
    contact = get_or_404("contact", contact_id, "Contact message not found")
    return serialize_doc(update_document("contact", contact["_id"], {"status": payload.status}))


@app.delete("/api/contact/{contact_id}")
def delete_contact(contact_id: str, admin=Depends(get_current_admin)):
    contact = get_or_404("contact", contact_id, "Contact message not found")
    db["contact"].delete_one({"_id": contact["_id"]})
    return {"message": "Contact message deleted successfully"}


# Banners

@app.get("/api/banners")
def list_banners():
    banners = get_documents("banner", {"is_active": True}, sort=[("sort_order", 1), ("created_at", -1)])
    return serialize_doc(banners)


@app.post("/api/banners", status_code=201)
async def create_banner(request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request)
    doc = validate(BannerCreate, data).model_dump()
    return await run_in_threadpool(save_new_banner, doc, files)


@app.put("/api/banners/{banner_id}")
async def update_banner(banner_id: str, request: Request, admin=Depends(get_current_admin)):
    data, files = await read_payload(request)
    changes = validate(BannerUpdate, data).model_dump(exclude_unset=True, exclude_none=True)
    return await run_in_threadpool(save_banner_changes, banner_id, changes, files)


def save_new_banner(doc: dict, files: Dict[str, List[UploadFile]]) -> dict:
    image = upload_first(files, "image", "banners")
    if image:
        doc["image"] = image
    banner_id = create_document("banner", doc)
    return serialize_doc(db["banner"].find_one({"_id": ObjectId(banner_id)}))


def save_banner_changes(banner_id: str, changes: dict, files: Dict[str, List[UploadFile]]) -> dict:
    banner = get_or_404("banner", banner_id, "Banner not found")
    image = upload_first(files, "image", "banners")
    if image:
        changes["image"] = image
    updated = update_document("banner", banner["_id"], changes)
    if image:
        media.discard_images([public_id_of(banner)])
    return serialize_doc(updated)


@app.delete("/api/banners/{banner_id}")
def delete_banner(banner_id: str, admin=Depends(get_current_admin)):
    banner = get_or_404("banner", banner_id, "Banner not found")
    db["banner"].delete_one({"_id": banner["_id"]})
    media.discard_images([public_id_of(banner)])
    return {"message": "Banner deleted successfully"}


# Settings

@app.get("/api/settings/public")
def get_public_settings():
    settings = db["settings"].find_one({"_id": SETTINGS_KEY}) or {}
    return {k: settings[k] for k in SETTINGS_PUBLIC_FIELDS if k in settings}


@app.get("/api/settings")
def get_settings(admin=Depends(get_current_admin)):
    return serialize_doc(db["settings"].find_one({"_id": SETTINGS_KEY}) or {})


@app.put("/api/settings")
def update_settings(payload: SettingsUpdate, admin=Depends(get_current_admin)):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    stamp = now()
    db["settings"].update_one(
        {"_id": SETTINGS_KEY},
        {"$set": {**changes, "updated_at": stamp}, "$setOnInsert": {"created_at": stamp}},
        upsert=True,
    )
    return serialize_doc(db["settings"].find_one({"_id": SETTINGS_KEY}))


@app.get("/api/health")
def health():
    return {"status": "OK", "timestamp": now().isoformat()}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
