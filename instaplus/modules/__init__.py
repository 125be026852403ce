"""
Modules package initialization.
This package contains all the functional modules of the application.
"""

from instaplus.modules import users
from instaplus.modules import posts
from instaplus.modules import messages
from instaplus.modules import stories
from instaplus.modules import media
from instaplus.modules import realtime
