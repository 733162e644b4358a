"""Who may change a comment."""
from article_comments.services.comment_store import CommentRecord


def can_mutate(requester_id: int | None, comment: CommentRecord) -> bool:
    """True iff *requester_id* is present and is the comment's recorded author."""
    if requester_id is None:
        return False
    return comment.author_id == requester_id
