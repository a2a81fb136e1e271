from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.auth import UserRegister, UserLogin, UserResponse, TokenResponse
from app.auth.dependencies import get_current_user
from app.auth.security import hash_password, verify_password, create_user_token
from app.counters import login_failures
from app.services.accounts import provision_guest

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(token=create_user_token(user), user=UserResponse.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new user with email and password"""
    email = user_data.email.lower()
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=email,
        password_hash=hash_password(user_data.password),
        role=UserRole.USER,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    return _token_response(new_user)


@router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Authenticate user and return a JWT"""
    email = credentials.email.lower()
    if login_failures.reached(email):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many failed attempts. Please try again in {login_failures.window_minutes} minutes."
        )

    user = db.query(User).filter(User.email == email).first()

    if user is None or not verify_password(credentials.password, user.password_hash):
        attempts = login_failures.increment(email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"X-Remaining-Attempts": str(login_failures.remaining(attempts))}
        )

    login_failures.reset(email)
    return _token_response(user)


@router.post("/guest", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def create_guest_session(db: Session = Depends(get_db)):
    """Start an anonymous session so visitors can buy without an account"""
    return _token_response(provision_guest(db))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user
