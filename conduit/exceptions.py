"""Error taxonomy for the persistence layer."""


class EntityNotFoundError(Exception):
    """Raised by a storage adapter when the requested row does not exist."""

    def __init__(self, entity_type: str, key: object):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type} '{key}' not found")


class DatabaseError(Exception):
    """Any storage-layer failure not otherwise classified."""


# ---------------------------------------------------------------------------
# Operation-specific errors
# ---------------------------------------------------------------------------

class GetArticleError(Exception):
    pass


class ArticleNotFoundError(GetArticleError):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Article with slug '{slug}' not found")


class GetUserError(Exception):
    pass


class UserNotFoundError(GetUserError):
    def __init__(self, key: object):
        self.key = key
        super().__init__(f"User '{key}' not found")


class PublishArticleError(Exception):
    pass


class SlugAlreadyExistsError(PublishArticleError):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Article with slug '{slug}' already exists")


class EmptySlugError(PublishArticleError):
    def __init__(self, title: str):
        self.title = title
        super().__init__(f"Title '{title}' does not produce a usable slug")


class FollowError(Exception):
    pass


class SelfFollowError(FollowError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' cannot follow themselves")
