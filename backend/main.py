# backend/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from config import settings  # noqa: E402
from database import init_db  # noqa: E402

from routes.auth import router as auth_router  # noqa: E402
from routes.admin import router as admin_router  # noqa: E402
from routes.logs import router as logs_router  # noqa: E402
from routes.products import router as products_router  # noqa: E402
from routes.orders import router as orders_router  # noqa: E402
from routes.checkout import router as checkout_router  # noqa: E402
from routes.stripe import router as stripe_router  # noqa: E402
from routes.delivery import router as delivery_router  # noqa: E402
from routes.pages import router as pages_router  # noqa: E402

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

init_db()

app = FastAPI(title="Milkman Dairy Delivery API", version="1.0.0")

# CORS: the storefront runs on its own origin
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(pages_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(checkout_router)
app.include_router(stripe_router)
app.include_router(delivery_router)
app.include_router(admin_router)
app.include_router(logs_router)


@app.get("/")
def read_root():
    return {"message": "Milkman Dairy Delivery API is running"}
