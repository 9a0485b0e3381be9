from stepup.models.refresh_token import RefreshToken
from stepup.models.user import User

__all__ = ["RefreshToken", "User"]
