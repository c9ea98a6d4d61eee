from fastapi import FastAPI
from db.init import init_db
from dotenv import load_dotenv
import os

load_dotenv()

from routers import payment_methods, autopay, payments
from fastapi.middleware.cors import CORSMiddleware


origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]


app = FastAPI(title="Rent Billing Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,          # cannot be ["*"] if allow_credentials=True
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
@app.on_event("startup")
def startup():
    init_db()

@app.get("/health")
def health_check():
    return {"status": "ok"}

# Routers
app.include_router(payment_methods.router, prefix="/payment-methods", tags=["Payment Methods"])
app.include_router(autopay.router, prefix="/autopay", tags=["Autopay"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])


@app.get("/")
def root():
    return {"message": "Rent Billing Backend running successfully"}
