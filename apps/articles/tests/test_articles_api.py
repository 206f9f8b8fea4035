"""
Tests for the articles and tags API.

Covers:
- Public reads only ever see published articles
- Create/update/delete gated by role, ownership and workflow rules
- Workflow actions (submit, approve, reject, publish, unpublish)
- Service credentials bypass policies
- Error envelopes carry the policy reason code and status
- Store failures surface as 503, not 403
- Denials land in the decision log
"""

from unittest.mock import patch

import pytest

from apps.articles.models import Article, Tag
from apps.policies.models import PolicyDecisionLog
from apps.policies.ownership import DjangoResourceStore

ARTICLES = '/api/articles/'


def detail(article, suffix=''):
    return f'{ARTICLES}{article.pk}/{suffix}'


def assert_error(response, status_code, code):
    assert response.status_code == status_code, response.content
    body = response.json()
    assert body['error']['code'] == code
    assert body['request_id']
    return body['error']


# ============================================================================
# Public reads
# ============================================================================

@pytest.mark.django_db
class TestPublicReads:

    def test_list_shows_only_published(self, api_client, make_article, editor):
        make_article(created_by=editor, title='Draft piece')
        published = make_article(created_by=editor, title='Live piece', workflow_status='published')

        response = api_client.get(ARTICLES)

        assert response.status_code == 200
        assert [a['id'] for a in response.json()['results']] == [str(published.pk)]

    def test_draft_is_not_found_publicly(self, api_client, make_article, editor):
        article = make_article(created_by=editor)
        response = api_client.get(detail(article))
        assert_error(response, 404, 'NOT_FOUND')

    def test_malformed_id_is_not_found(self, api_client):
        response = api_client.get(f'{ARTICLES}not-a-uuid/')
        assert_error(response, 404, 'NOT_FOUND')

    def test_by_slug(self, api_client, make_article, editor):
        make_article(created_by=editor, title='Bridge opens', workflow_status='published')
        response = api_client.get(f'{ARTICLES}slug/bridge-opens/')
        assert response.status_code == 200
        assert response.json()['title'] == 'Bridge opens'

    def test_tag_filter(self, api_client, make_article, editor):
        tag = Tag.objects.create(name='Transport')
        tagged = make_article(created_by=editor, title='Rail', workflow_status='published')
        tagged.tags.add(tag)
        make_article(created_by=editor, title='Weather', workflow_status='published')

        response = api_client.get(ARTICLES, {'tag': 'transport'})

        assert [a['title'] for a in response.json()['results']] == ['Rail']


# ============================================================================
# Create
# ============================================================================

@pytest.mark.django_db
class TestCreate:

    def test_reporter_creates_draft(self, client_for, reporter):
        response = client_for(reporter).post(ARTICLES, {'title': 'Council meets'}, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['workflow_status'] == 'draft'
        assert body['created_by']['id'] == reporter.pk

    def test_reporter_cannot_create_published(self, client_for, reporter):
        response = client_for(reporter).post(
            ARTICLES, {'title': 'Scoop', 'workflow_status': 'published'}, format='json',
        )

        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['details']['allowed_statuses'] == ['draft']
        assert error['details']['policy'] == 'workflow-status'
        assert Article.objects.count() == 0

    def test_editor_creates_published(self, client_for, editor):
        response = client_for(editor).post(
            ARTICLES, {'title': 'Breaking', 'workflow_status': 'published'}, format='json',
        )
        assert response.status_code == 201
        assert response.json()['published_at'] is not None

    def test_reviewer_cannot_create(self, client_for, reviewer):
        response = client_for(reviewer).post(ARTICLES, {'title': 'Opinion'}, format='json')
        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['message'].startswith('Reviewers cannot create articles.')

    def test_reader_is_stopped_by_role_gate(self, client_for, reader):
        response = client_for(reader).post(ARTICLES, {'title': 'Letter'}, format='json')
        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['details']['policy'] == 'role-gate'

    def test_user_without_role(self, client_for, roleless_user):
        response = client_for(roleless_user).post(ARTICLES, {'title': 'Letter'}, format='json')
        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['message'].startswith('No role assigned to user.')

    def test_anonymous(self, api_client):
        response = api_client.post(ARTICLES, {'title': 'Spam'}, format='json')
        error = assert_error(response, 401, 'UNAUTHENTICATED')
        assert error['message'] == 'Authentication required'

    def test_invalid_status_value(self, client_for, editor):
        response = client_for(editor).post(
            ARTICLES, {'title': 'X', 'workflow_status': 'archived'}, format='json',
        )
        assert_error(response, 400, 'INVALID_STATUS_VALUE')

    def test_serializer_validation_still_applies(self, client_for, reporter):
        response = client_for(reporter).post(ARTICLES, {'body': 'no title'}, format='json')
        assert_error(response, 400, 'VALIDATION_ERROR')


# ============================================================================
# Update / delete
# ============================================================================

@pytest.mark.django_db
class TestUpdate:

    def test_owner_updates(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter)
        response = client_for(reporter).patch(detail(article), {'title': 'Fixed'}, format='json')
        assert response.status_code == 200
        assert response.json()['title'] == 'Fixed'

    def test_other_reporter_is_forbidden(self, client_for, make_article, reporter, other_reporter):
        article = make_article(created_by=reporter)

        response = client_for(other_reporter).patch(detail(article), {'title': 'Hijack'}, format='json')

        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['message'] == 'You can only modify your own content'
        article.refresh_from_db()
        assert article.title != 'Hijack'

    def test_editor_overrides_ownership(self, client_for, make_article, reporter, editor):
        article = make_article(created_by=reporter)
        response = client_for(editor).patch(detail(article), {'workflow_status': 'published'}, format='json')
        assert response.status_code == 200
        assert response.json()['workflow_status'] == 'published'

    def test_reporter_cannot_pull_back_from_review(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter, workflow_status='review')

        response = client_for(reporter).patch(detail(article), {'workflow_status': 'draft'}, format='json')

        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['details']['current_status'] == 'review'
        assert error['details']['allowed_statuses'] == []

    def test_reporter_submits_via_update(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter)
        response = client_for(reporter).patch(detail(article), {'workflow_status': 'review'}, format='json')
        assert response.status_code == 200
        assert response.json()['submitted_for_review_at'] is not None

    def test_unknown_article(self, client_for, reporter):
        response = client_for(reporter).patch(
            f'{ARTICLES}00000000-0000-0000-0000-000000000000/', {'title': 'x'}, format='json',
        )
        assert_error(response, 404, 'NOT_FOUND')

    def test_malformed_id(self, client_for, reporter):
        response = client_for(reporter).patch(f'{ARTICLES}123/', {'title': 'x'}, format='json')
        assert_error(response, 404, 'NOT_FOUND')

    def test_ownerless_article_is_integrity_error_for_reporter(self, client_for, make_article, reporter):
        article = make_article(created_by=None)
        response = client_for(reporter).patch(detail(article), {'title': 'x'}, format='json')
        assert_error(response, 422, 'INTEGRITY_ERROR')

    def test_created_by_cannot_be_reassigned(self, client_for, make_article, reporter, editor):
        article = make_article(created_by=reporter)
        client_for(editor).patch(detail(article), {'created_by': editor.pk}, format='json')
        article.refresh_from_db()
        assert article.created_by == reporter


@pytest.mark.django_db
class TestDelete:

    def test_reporter_cannot_delete_own(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter)
        response = client_for(reporter).delete(detail(article))
        assert_error(response, 403, 'FORBIDDEN')
        assert Article.objects.filter(pk=article.pk).exists()

    def test_editor_deletes(self, client_for, make_article, reporter, editor):
        article = make_article(created_by=reporter)
        response = client_for(editor).delete(detail(article))
        assert response.status_code == 204
        assert not Article.objects.filter(pk=article.pk).exists()


# ============================================================================
# Workflow actions
# ============================================================================

@pytest.mark.django_db
class TestWorkflowActions:

    def test_full_lifecycle(self, client_for, reporter, reviewer, editor):
        author = client_for(reporter)

        response = author.post(ARTICLES, {'title': 'Harbour expansion'}, format='json')
        assert response.status_code == 201
        url = f"{ARTICLES}{response.json()['id']}/"

        # Reporters cannot skip review
        response = author.patch(url, {'workflow_status': 'published'}, format='json')
        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['message'].endswith('Allowed transitions from "draft": review')

        response = author.post(f'{url}submit-for-review/')
        assert response.status_code == 200
        assert response.json()['article']['workflow_status'] == 'review'

        # ...and cannot touch the article while it is in review
        response = author.patch(url, {'workflow_status': 'published'}, format='json')
        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert 'Requested transition: "review" -> "published".' in error['message']
        assert error['message'].endswith('Allowed transitions from "review": none')
        assert error['details']['allowed_statuses'] == []

        response = client_for(reviewer).post(f'{url}reject/', {'notes': 'Add a second source'}, format='json')
        body = response.json()['article']
        assert response.status_code == 200
        assert body['workflow_status'] == 'draft'
        assert body['review_notes'] == 'Add a second source'
        assert body['reviewed_by']['id'] == reviewer.pk

        response = author.patch(url, {'body': 'Now with two sources.'}, format='json')
        assert response.status_code == 200

        response = author.post(f'{url}submit-for-review/')
        assert response.status_code == 200
        assert response.json()['article']['workflow_status'] == 'review'

        response = client_for(reviewer).post(f'{url}approve/', {'notes': 'Solid'}, format='json')
        assert response.status_code == 200
        assert response.json()['article']['workflow_status'] == 'review'
        assert response.json()['article']['review_notes'] == 'Solid'

        assert_error(author.post(f'{url}publish/'), 403, 'FORBIDDEN')

        response = client_for(editor).post(f'{url}publish/')
        assert response.status_code == 200
        assert response.json()['article']['workflow_status'] == 'published'
        assert response.json()['article']['published_at'] is not None

        response = author.patch(url, {'workflow_status': 'draft'}, format='json')
        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['message'].startswith('Reporters cannot modify published articles.')

        response = client_for(editor).post(f'{url}unpublish/')
        assert response.status_code == 200
        assert response.json()['article']['workflow_status'] == 'draft'
        assert response.json()['article']['published_at'] is None

    def test_reject_requires_review(self, client_for, make_article, reporter, reviewer):
        article = make_article(created_by=reporter)

        response = client_for(reviewer).post(detail(article, 'reject/'), {'notes': 'No'}, format='json')

        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['details']['policy'] == 'workflow-reject'
        assert error['details']['expected_status'] == 'review'
        article.refresh_from_db()
        assert article.reviewed_by is None
        assert article.review_notes == ''

    def test_resubmit_while_in_review(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter, workflow_status='review')
        response = client_for(reporter).post(detail(article, 'submit-for-review/'))
        assert_error(response, 409, 'INVALID_TRANSITION')

    def test_submit_by_non_owner(self, client_for, make_article, reporter, other_reporter):
        article = make_article(created_by=reporter)
        response = client_for(other_reporter).post(detail(article, 'submit-for-review/'))
        assert_error(response, 403, 'FORBIDDEN')

    def test_submit_published_article(self, client_for, make_article, editor):
        article = make_article(created_by=editor, workflow_status='published')
        response = client_for(editor).post(detail(article, 'submit-for-review/'))
        error = assert_error(response, 409, 'INVALID_TRANSITION')
        assert error['details']['policy'] == 'workflow-submit-for-review'

    def test_reviewer_cannot_submit(self, client_for, make_article, reviewer):
        article = make_article(created_by=reviewer)
        response = client_for(reviewer).post(detail(article, 'submit-for-review/'))
        assert_error(response, 403, 'FORBIDDEN')

    def test_reject_returns_to_draft(self, client_for, make_article, reporter, reviewer):
        article = make_article(created_by=reporter, workflow_status='review')
        response = client_for(reviewer).post(detail(article, 'reject/'), {'notes': 'Cite sources'}, format='json')
        assert response.status_code == 200
        body = response.json()['article']
        assert body['workflow_status'] == 'draft'
        assert body['review_notes'] == 'Cite sources'

    def test_approve_requires_review_state(self, client_for, make_article, reporter, reviewer):
        article = make_article(created_by=reporter)
        response = client_for(reviewer).post(detail(article, 'approve/'))
        assert_error(response, 409, 'INVALID_TRANSITION')

    def test_reporter_cannot_approve(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter, workflow_status='review')
        response = client_for(reporter).post(detail(article, 'approve/'))
        assert_error(response, 403, 'FORBIDDEN')

    @pytest.mark.parametrize('user_fixture', ['reporter', 'reviewer', 'reader'])
    def test_only_editors_publish(self, request, client_for, make_article, editor, user_fixture):
        user = request.getfixturevalue(user_fixture)
        article = make_article(created_by=editor, workflow_status='review')

        response = client_for(user).post(detail(article, 'publish/'))

        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['message'].startswith('You do not have permission to publish content.')

    def test_admin_publishes(self, client_for, make_article, reporter, admin_user):
        article = make_article(created_by=reporter, workflow_status='review')
        response = client_for(admin_user).post(detail(article, 'publish/'))
        assert response.status_code == 200


# ============================================================================
# Listings
# ============================================================================

@pytest.mark.django_db
class TestListings:

    def test_my_articles(self, client_for, make_article, reporter, other_reporter):
        mine = make_article(created_by=reporter, workflow_status='review')
        make_article(created_by=other_reporter)

        response = client_for(reporter).get(f'{ARTICLES}my/')

        assert response.status_code == 200
        assert [a['id'] for a in response.json()['results']] == [str(mine.pk)]

    def test_reader_has_no_my_articles(self, client_for, reader):
        assert_error(client_for(reader).get(f'{ARTICLES}my/'), 403, 'FORBIDDEN')

    def test_review_queue(self, client_for, make_article, reporter, reviewer):
        queued = make_article(created_by=reporter, workflow_status='review')
        make_article(created_by=reporter)

        response = client_for(reviewer).get(f'{ARTICLES}review-queue/')

        assert [a['id'] for a in response.json()['results']] == [str(queued.pk)]

    def test_reporter_has_no_review_queue(self, client_for, reporter):
        assert_error(client_for(reporter).get(f'{ARTICLES}review-queue/'), 403, 'FORBIDDEN')

    def test_admin_listing_shows_every_state(self, client_for, make_article, reporter):
        make_article(created_by=reporter)
        make_article(created_by=reporter, workflow_status='published')

        response = client_for(reporter).get(f'{ARTICLES}admin/')

        assert response.status_code == 200
        assert response.json()['count'] == 2

    def test_admin_detail_by_slug(self, client_for, make_article, reporter):
        make_article(created_by=reporter, title='Unreleased')
        response = client_for(reporter).get(f'{ARTICLES}admin/slug/unreleased/')
        assert response.status_code == 200

    def test_admin_detail_unknown(self, client_for, reporter):
        response = client_for(reporter).get(f'{ARTICLES}admin/nope/')
        assert_error(response, 404, 'NOT_FOUND')

    def test_reader_has_no_cms_access(self, client_for, reader):
        assert_error(client_for(reader).get(f'{ARTICLES}admin/'), 403, 'FORBIDDEN')


# ============================================================================
# Service credentials
# ============================================================================

@pytest.mark.django_db
class TestServiceCredentials:

    def test_service_creates_published(self, service_client):
        response = service_client.post(
            ARTICLES, {'title': 'Wire story', 'workflow_status': 'published'}, format='json',
        )
        assert response.status_code == 201
        assert response.json()['created_by'] is None

    def test_service_publishes_any_article(self, service_client, make_article, reporter):
        article = make_article(created_by=reporter)
        response = service_client.post(detail(article, 'publish/'))
        assert response.status_code == 200

    def test_service_updates_ownerless_article(self, service_client, make_article):
        article = make_article(created_by=None)
        response = service_client.patch(detail(article), {'title': 'Updated'}, format='json')
        assert response.status_code == 200

    def test_revoked_key_is_rejected(self, service_client, service_token):
        token, _ = service_token
        token.is_active = False
        token.save()

        response = service_client.post(ARTICLES, {'title': 'x'}, format='json')

        assert_error(response, 401, 'AUTHENTICATION_REQUIRED')


# ============================================================================
# Tags
# ============================================================================

@pytest.mark.django_db
class TestTags:

    def test_anyone_lists_tags(self, api_client):
        Tag.objects.create(name='Sport')
        response = api_client.get('/api/tags/')
        assert response.status_code == 200
        assert response.json()['results'][0]['slug'] == 'sport'

    def test_cms_role_creates_tag(self, client_for, reporter):
        response = client_for(reporter).post('/api/tags/', {'name': 'Courts'}, format='json')
        assert response.status_code == 201
        assert response.json()['slug'] == 'courts'

    def test_reader_cannot_create_tag(self, client_for, reader):
        response = client_for(reader).post('/api/tags/', {'name': 'Courts'}, format='json')
        error = assert_error(response, 403, 'FORBIDDEN')
        assert error['details']['policy'] == 'cms-role'

    def test_tag_by_slug(self, api_client):
        Tag.objects.create(name='Health Care')
        assert api_client.get('/api/tags/slug/health-care/').status_code == 200
        assert_error(api_client.get('/api/tags/slug/missing/'), 404, 'NOT_FOUND')


# ============================================================================
# Infrastructure and audit
# ============================================================================

@pytest.mark.django_db
class TestInfrastructureAndAudit:

    def test_store_failure_is_service_unavailable(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter)

        with patch.object(DjangoResourceStore, 'find_by_id', side_effect=RuntimeError('db down')):
            response = client_for(reporter).patch(detail(article), {'title': 'x'}, format='json')

        assert_error(response, 503, 'SERVICE_UNAVAILABLE')

    def test_denial_is_logged(self, client_for, make_article, reporter):
        article = make_article(created_by=reporter)

        client_for(reporter).delete(detail(article))

        log = PolicyDecisionLog.objects.get()
        assert log.chain == 'articles.delete'
        assert log.policy == 'role-gate'
        assert log.outcome == 'deny'
        assert log.reason_code == 'FORBIDDEN'
        assert log.principal_id == str(reporter.pk)
        assert log.resource == f'articles.article:{article.pk}'

    def test_allowed_decisions_are_not_stored_by_default(self, client_for, make_article, editor):
        article = make_article(created_by=editor)
        client_for(editor).delete(detail(article))
        assert PolicyDecisionLog.objects.count() == 0

    def test_request_id_is_echoed(self, client_for, reporter):
        request_id = '6f1c2a4e-8d3b-4e1f-9a2b-0c5d7e8f9a1b'
        response = client_for(reporter).post(
            f'{ARTICLES}', {'title': 'x', 'workflow_status': 'published'},
            format='json', HTTP_X_REQUEST_ID=request_id,
        )
        assert response['X-Request-ID'] == request_id
        assert response.json()['request_id'] == request_id
