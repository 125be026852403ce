# Import all models here so metadata.create_all can see them
from instaplus.db.session import Base

# Import all models below
from instaplus.modules.users.models.user import User, Follow
from instaplus.modules.posts.models.post import Post
from instaplus.modules.messages.models.message import Conversation, Message, conversation_participants
from instaplus.modules.stories.models.story import Story, StoryView
