import logging
import shutil
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import BackgroundTasks, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, errors, models, schemas
from .auth import Role, TokenService, admin_required, authenticated, get_token_service
from .config import Settings, get_settings, setup_logging
from .db import Base, create_db_engine, create_session_factory, get_db
from .mailer import BaseMailer, get_mailer, password_reset_email, verification_email
from .schemas import dump
from .utils import generate_verify_token, sanitize_input

# Fails here, at startup, when JWT_SECRET or DATABASE_URL is missing
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

engine = create_db_engine(settings.database_url)
# Create tables if not existing. In production, use Alembic.
Base.metadata.create_all(bind=engine)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} {settings.app_version} (debug={settings.debug})")
    logger.info(f"Mailer: {get_mailer().provider_name}")
    yield
    logger.info("Shutting down")


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.state.session_factory = create_session_factory(engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def envelope(message: str, **payload) -> dict:
    return {"success": True, "message": message, **payload}


# -------------------- Error handlers --------------------

@app.exception_handler(errors.AppError)
async def app_error_handler(request: Request, exc: errors.AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = "Please provide all fields"
    if fields:
        message = f"Missing or invalid fields: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"success": False, "message": message, "fields": fields})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) if settings.debug else "Internal server error",
        },
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

def _login(db: Session, tokens: TokenService, role: Role, payload: schemas.LoginRequest):
    model = models.Admin if role == Role.ADMIN else models.User
    try:
        principal = crud.authenticate(db, model, payload.email, payload.password)
    except (errors.NotFoundError, errors.IncorrectPasswordError) as e:
        logger.warning(f"Failed {role.value} login: {e.message}")
        # same answer for unknown email and wrong password
        raise errors.UnauthorizedError("Invalid email or password") from e
    logger.info(f"{role.value} {principal.id} logged in")
    return tokens.issue(principal.id, role), principal


@app.post("/auth/register", status_code=201)
async def register_user(
    payload: schemas.UserRegister,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: BaseMailer = Depends(get_mailer),
    app_settings: Settings = Depends(get_settings),
):
    verify_token = generate_verify_token()
    user = crud.create_user(db, payload, verify_token)
    subject, body = verification_email(app_settings, verify_token)
    background_tasks.add_task(mailer.send, user.email, subject, body)
    return envelope("Successfully Registered", user=dump(schemas.UserRead, user))


@app.post("/auth/login")
async def login_user(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    token, user = _login(db, tokens, Role.USER, payload)
    return envelope("Login successfully", token=token, user=dump(schemas.UserRead, user))


@app.get("/auth/verifyEmail")
async def verify_email(token: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    user = crud.verify_email(db, token)
    return envelope("User verified successfully", user=dump(schemas.UserRead, user))


@app.post("/auth/forgot")
async def forgot_password(
    payload: schemas.ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: BaseMailer = Depends(get_mailer),
    app_settings: Settings = Depends(get_settings),
):
    reset_token = generate_verify_token()
    user = crud.request_password_reset(db, payload.email, reset_token)
    subject, body = password_reset_email(app_settings, reset_token)
    background_tasks.add_task(mailer.send, user.email, subject, body)
    return envelope("Password reset email sent")


@app.post("/auth/updatepassword")
async def update_password_with_token(payload: schemas.TokenPasswordUpdate, db: Session = Depends(get_db)):
    crud.reset_password_with_token(db, payload.token, payload.new_password)
    return envelope("Password updated successfully")


@app.post("/admin/register", status_code=201)
async def register_admin(payload: schemas.AdminRegister, db: Session = Depends(get_db)):
    admin = crud.create_admin(db, payload)
    return envelope("Successfully Registered", admin=dump(schemas.AdminRead, admin))


@app.post("/admin/login")
async def login_admin(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    token, admin = _login(db, tokens, Role.ADMIN, payload)
    return envelope("Login successfully", token=token, admin=dump(schemas.AdminRead, admin))


# -------------------- User profile --------------------

@app.get("/user/getUser")
async def get_user(user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    return envelope("User found successfully", user=dump(schemas.UserRead, user))


@app.put("/user/updateUser")
async def update_user(payload: schemas.UserUpdate, user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    user = crud.update_user(db, user_id, payload)
    return envelope("User Updated Successfully", user=dump(schemas.UserRead, user))


@app.put("/user/updatePassword")
async def update_password(payload: schemas.PasswordUpdate, user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    crud.update_password(db, user_id, payload.old_password, payload.new_password)
    return envelope("Password updated successfully")


@app.post("/user/resetPassword")
async def reset_password(payload: schemas.AnswerPasswordReset, user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    crud.reset_password_with_answer(db, payload.email, payload.answer, payload.new_password)
    return envelope("Password Reset Successfully")


@app.put("/user/profileImage")
async def upload_profile_image(
    image: UploadFile = File(...),
    user_id: str = Depends(authenticated),
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_settings),
):
    previous = crud.get_user(db, user_id).profile_image
    upload_dir = Path(app_settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(image.filename or "").suffix.lower()
    if suffix not in IMAGE_SUFFIXES:
        suffix = ".jpg"
    target = upload_dir / f"image-{user_id}-{int(time.time() * 1000)}{suffix}"
    with target.open("wb") as out:
        await run_in_threadpool(shutil.copyfileobj, image.file, out)
    user = crud.set_profile_image(db, user_id, str(target))
    if previous and previous != str(target):
        Path(previous).unlink(missing_ok=True)
        logger.info(f"Replaced profile image for user {user_id}")
    return envelope("File uploaded successfully", user=dump(schemas.UserRead, user))


@app.delete("/user/deleteUser")
async def delete_user(user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    crud.delete_user(db, user_id)
    return envelope("User Deleted Successfully")


# -------------------- Restaurants --------------------

@app.post("/restaurant/create", status_code=201, dependencies=[Depends(admin_required)])
async def create_restaurant(payload: schemas.RestaurantCreate, db: Session = Depends(get_db)):
    restaurant = crud.create_restaurant(db, payload)
    return envelope("New Restaurant Created Successfully", restaurant=dump(schemas.RestaurantRead, restaurant))


@app.get("/restaurant/getAll")
async def list_restaurants(db: Session = Depends(get_db)):
    restaurants = [dump(schemas.RestaurantRead, r) for r in crud.list_restaurants(db)]
    return envelope("Restaurants Found Successfully", totalCount=len(restaurants), restaurants=restaurants)


@app.get("/restaurant/get/{restaurant_id}")
async def get_restaurant(restaurant_id: str, db: Session = Depends(get_db)):
    restaurant = crud.get_restaurant(db, restaurant_id)
    return envelope("Restaurant Found Successfully", restaurant=dump(schemas.RestaurantRead, restaurant))


@app.put("/restaurant/update/{restaurant_id}", dependencies=[Depends(admin_required)])
async def update_restaurant(restaurant_id: str, payload: schemas.RestaurantUpdate, db: Session = Depends(get_db)):
    restaurant = crud.update_restaurant(db, restaurant_id, payload)
    return envelope("Restaurant Updated Successfully", restaurant=dump(schemas.RestaurantRead, restaurant))


@app.delete("/restaurant/delete/{restaurant_id}", dependencies=[Depends(admin_required)])
async def delete_restaurant(restaurant_id: str, db: Session = Depends(get_db)):
    crud.delete_restaurant(db, restaurant_id)
    return envelope("Restaurant Deleted Successfully")


# -------------------- Categories --------------------

@app.post("/category/create", status_code=201, dependencies=[Depends(admin_required)])
async def create_category(payload: schemas.CategoryCreate, db: Session = Depends(get_db)):
    category = crud.create_category(db, payload)
    return envelope("Category Created Successfully", category=dump(schemas.CategoryRead, category))


@app.get("/category/getAll")
async def list_categories(db: Session = Depends(get_db)):
    categories = [dump(schemas.CategoryRead, c) for c in crud.list_categories(db)]
    return envelope("Categories found successfully", totalCategories=len(categories), categories=categories)


@app.put("/category/update/{category_id}", dependencies=[Depends(admin_required)])
async def update_category(category_id: str, payload: schemas.CategoryUpdate, db: Session = Depends(get_db)):
    category = crud.update_category(db, category_id, payload)
    return envelope("Category Updated Successfully", category=dump(schemas.CategoryRead, category))


@app.delete("/category/delete/{category_id}", dependencies=[Depends(admin_required)])
async def delete_category(category_id: str, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return envelope("Category Deleted Successfully")


# -------------------- Foods --------------------

@app.post("/food/create", status_code=201, dependencies=[Depends(admin_required)])
async def create_food(payload: schemas.FoodCreate, db: Session = Depends(get_db)):
    food = crud.create_food(db, payload)
    return envelope("Food created successfully", food=dump(schemas.FoodRead, food))


@app.get("/food/getall")
async def list_foods(q: str = Query("", max_length=100), db: Session = Depends(get_db)):
    foods = [dump(schemas.FoodRead, f) for f in crud.list_foods(db, sanitize_input(q))]
    return envelope("Foods fetched successfully", totalFoods=len(foods), foods=foods)


@app.get("/food/get/{food_id}")
async def get_food(food_id: str, db: Session = Depends(get_db)):
    food = crud.get_food(db, food_id)
    return envelope("Food fetched successfully", food=dump(schemas.FoodRead, food))


@app.get("/food/getbyrestaurant/{restaurant_id}")
async def list_foods_by_restaurant(restaurant_id: str, db: Session = Depends(get_db)):
    crud.get_restaurant(db, restaurant_id)
    foods = [dump(schemas.FoodRead, f) for f in crud.list_foods_by_restaurant(db, restaurant_id)]
    return envelope("Food based on restaurant fetched successfully", foods=foods)


@app.put("/food/update/{food_id}", dependencies=[Depends(admin_required)])
async def update_food(food_id: str, payload: schemas.FoodUpdate, db: Session = Depends(get_db)):
    food = crud.update_food(db, food_id, payload)
    return envelope("Food updated successfully", food=dump(schemas.FoodRead, food))


@app.delete("/food/delete/{food_id}", dependencies=[Depends(admin_required)])
async def delete_food(food_id: str, db: Session = Depends(get_db)):
    crud.delete_food(db, food_id)
    return envelope("Food deleted successfully")


# -------------------- Orders --------------------

@app.post("/food/placeorder", status_code=201)
async def place_order(payload: schemas.OrderCreate, user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    order = crud.place_order(db, payload.cart, user_id)
    return envelope("Order placed successfully", order=dump(schemas.OrderRead, order))


@app.get("/food/orders")
async def list_my_orders(user_id: str = Depends(authenticated), db: Session = Depends(get_db)):
    orders = [dump(schemas.OrderRead, o) for o in crud.list_orders_for_buyer(db, user_id)]
    return envelope("Orders fetched successfully", orders=orders)


@app.post("/food/orderstatus/{order_id}", dependencies=[Depends(admin_required)])
async def update_order_status(order_id: str, payload: schemas.OrderStatusUpdate, db: Session = Depends(get_db)):
    order = crud.update_order_status(db, order_id, payload.status)
    return envelope("Order Status Updated", order=dump(schemas.OrderRead, order))
