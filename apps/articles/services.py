"""
Editorial services: persisting article changes after authorization.

Views evaluate the operation's policy chain first; these methods only run
once the chain allowed the request, and each performs a single write (one
transaction).
"""

import logging
from typing import Any, Dict, Iterable, Optional

from django.contrib.auth import get_user_model
from django.db import transaction

from .models import Article
from .state_machine import WorkflowStateMachine, WorkflowStatus, parse_status

logger = logging.getLogger(__name__)

# Never writable through the service
PROTECTED_FIELDS = frozenset({
    'id', 'created_by', 'created_at', 'updated_at',
    'published_at', 'submitted_for_review_at',
    'reviewed_by', 'reviewed_at',
})


def _user_or_none(actor):
    """The actor as a user row; service credentials have none."""
    return actor if isinstance(actor, get_user_model()) else None


class EditorialService:
    """
    Article persistence for the editorial API.
    """

    def create(self, actor, data: Dict[str, Any], tags: Optional[Iterable] = None) -> Article:
        """
        Create an article owned by ``actor``.

        A non-draft initial status is applied as a transition from draft so
        the workflow timestamps are set the same way as for later changes.
        """
        data = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        target = parse_status(data.pop('workflow_status', None)) or WorkflowStatus.DRAFT

        with transaction.atomic():
            article = Article(**data)
            article.created_by = _user_or_none(actor)
            article.workflow_status = WorkflowStatus.DRAFT.value
            article.save()
            if tags is not None:
                article.tags.set(tags)

            if target != WorkflowStatus.DRAFT:
                WorkflowStateMachine(article).transition_to(target, actor=_user_or_none(actor))

        logger.info(
            "Article %s created by %s with status %s",
            article.pk, getattr(actor, 'pk', None), article.workflow_status,
        )
        return article

    def update(
        self,
        article: Article,
        actor,
        data: Dict[str, Any],
        tags: Optional[Iterable] = None,
    ) -> Article:
        """Update content fields and, if requested, the workflow status."""
        data = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        target = parse_status(data.pop('workflow_status', None))

        with transaction.atomic():
            for name, value in data.items():
                setattr(article, name, value)
            if data:
                article.save(update_fields=[*data.keys(), 'updated_at'])
            if tags is not None:
                article.tags.set(tags)

            if target is not None and target != article.status:
                WorkflowStateMachine(article).transition_to(target, actor=_user_or_none(actor))

        return article

    def delete(self, article: Article, actor) -> None:
        article_id = article.pk
        article.delete()
        logger.info("Article %s deleted by %s", article_id, getattr(actor, 'pk', None))

    # =========================================================================
    # Workflow actions
    # =========================================================================

    def submit_for_review(self, article: Article, actor) -> Article:
        if article.status == WorkflowStatus.REVIEW:
            return article
        return WorkflowStateMachine(article).transition_to(
            WorkflowStatus.REVIEW, actor=_user_or_none(actor),
        )

    def approve(self, article: Article, actor, notes: Optional[str] = None) -> Article:
        """Record approval. The article stays in review until an editor publishes it."""
        return WorkflowStateMachine(article).record_review(_user_or_none(actor), notes)

    def reject(self, article: Article, actor, notes: Optional[str] = None) -> Article:
        """Return the article to draft with the reviewer's notes."""
        return WorkflowStateMachine(article).transition_to(
            WorkflowStatus.DRAFT,
            actor=_user_or_none(actor),
            review_notes=notes,
            reviewed=True,
        )

    def publish(self, article: Article, actor) -> Article:
        return WorkflowStateMachine(article).transition_to(
            WorkflowStatus.PUBLISHED, actor=_user_or_none(actor),
        )

    def unpublish(self, article: Article, actor) -> Article:
        return WorkflowStateMachine(article).transition_to(
            WorkflowStatus.DRAFT, actor=_user_or_none(actor),
        )
