from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from tournex.api.dependencies import get_db
from tournex.core import security
from tournex.models import user as user_model


def get_current_user(token: str = Depends(security.oauth2_scheme), db: Session = Depends(get_db)) -> user_model.User:
    """Resolve the bearer token issued by the auth service into a stored user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token_data = security.verify_token(token, credentials_exception)

    user = db.query(user_model.User).filter(user_model.User.id == token_data.user_id).first()
    if user is None:
        raise credentials_exception
    return user
