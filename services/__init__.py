"""services/ -- REST collaborators for the console's collections.

Layer rule: services/ imports from auth/ and core/ only. api/ and web/ import
from services/, not the other way around.
"""

from services.articles import ArticleService, filter_articles
from services.categories import CategoryService
from services.users import UserPage, UserService

__all__ = ["ArticleService", "filter_articles", "CategoryService", "UserPage", "UserService"]
