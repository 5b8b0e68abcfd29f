from photoshelf.models.album import Album, AlbumPhoto
from photoshelf.models.photo import Photo
from photoshelf.models.profile import Profile
from photoshelf.models.user import RefreshToken, User

__all__ = [
    "User",
    "RefreshToken",
    "Profile",
    "Photo",
    "Album",
    "AlbumPhoto",
]
