from firebase_admin import auth
from fastapi import HTTPException, Security, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone

from firebase_client import init_firebase, get_db

# Security scheme for bearer token
security = HTTPBearer()


async def verify_firebase_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> dict:
    """
    Verify Firebase ID token and return user information.
    This function will be used as a dependency in protected routes.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        dict: User information including uid, email and admin flag

    Raises:
        HTTPException: If token is invalid
    """
    token = credentials.credentials
    init_firebase()

    try:
        decoded_token = auth.verify_id_token(token)
    except auth.ExpiredIdTokenError:
        raise HTTPException(
            status_code=401,
            detail="Authentication token has expired"
        )
    except auth.InvalidIdTokenError:
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token"
        )
    except Exception as e:
        raise HTTPException(
            status_code=401,
            detail=f"Authentication failed: {str(e)}"
        )

    return {
        "uid": decoded_token["uid"],
        "email": decoded_token.get("email"),
        "is_admin": bool(decoded_token.get("admin", False)),
    }


async def store_user_in_firestore(user_data: dict) -> dict:
    """
    Store or update user data in Firestore.

    Args:
        user_data: Dictionary containing user information

    Returns:
        dict: Stored user data with timestamp
    """
    user_doc_ref = get_db().collection('users').document(user_data['uid'])
    now = datetime.now(timezone.utc)

    user_document = {
        "uid": user_data['uid'],
        "email": user_data['email'],
        "last_login": now,
        "updated_at": now
    }

    if user_doc_ref.get().exists:
        user_doc_ref.update({
            "last_login": now,
            "updated_at": now
        })
    else:
        user_document["created_at"] = now
        user_document["vouchers"] = {}
        user_doc_ref.set(user_document)

    return {**user_document, "is_admin": user_data["is_admin"]}


async def get_current_user(
    user_data: dict = Depends(verify_firebase_token)
) -> dict:
    """
    Get current authenticated user and ensure they're stored in Firestore.
    Use this as a dependency in your protected routes.
    """
    return await store_user_in_firestore(user_data)


async def require_admin(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """Dependency for catalog management routes (`admin` custom claim)"""
    if not current_user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user
