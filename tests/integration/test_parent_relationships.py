"""
Integration tests for parent-child relationships.

Every child with relationships keeps exactly one primary contact, a
(parent, child) pair is linked at most once and the last parent of a child
cannot be removed.
"""

import pytest

from daycare.models import ParentChildRelationship, User


def primaries(session, child_id):
    session.expire_all()
    return session.query(ParentChildRelationship).filter_by(child_id=child_id, is_primary=True).all()


def relationship_of(session, parent_id, child_id):
    session.expire_all()
    return session.query(ParentChildRelationship).filter_by(parent_id=parent_id, child_id=child_id).first()


def add_new_parent(client, headers, child_id, **overrides):
    body = {
        'childId': child_id,
        'firstName': 'Tom',
        'lastName': 'Lee',
        'email': 'tom@x.com',
        'phone': '555-0100',
        'relationship': 'FATHER',
    }
    body.update(overrides)
    return client.post('/parent-relationships/add-new-parent', json=body, headers=headers)


def add_existing_parent(client, headers, child_id, parent_id, **overrides):
    body = {'childId': child_id, 'parentId': parent_id, 'relationship': 'FATHER'}
    body.update(overrides)
    return client.post('/parent-relationships/add-existing-parent', json=body, headers=headers)


class TestAddNewParent:
    """Tests for POST /parent-relationships/add-new-parent."""

    def test_new_primary_parent_demotes_existing(
        self, client, session, admin, child, parent_user, auth_headers, outbox
    ):
        response = add_new_parent(client, auth_headers(admin), child.id, isPrimary=True)

        assert response.status_code == 201
        body = response.get_json()
        assert body['isNewParent'] is True
        assert body['relationship']['isPrimary'] is True
        assert body['relationship']['parent']['email'] == 'tom@x.com'

        tom = session.query(User).filter_by(email='tom@x.com').first()
        assert tom.role == 'PARENT'
        assert tom.tenant_id == child.tenant_id
        assert tom.email_verified is False
        assert tom.email_verification_token is not None

        assert relationship_of(session, parent_user.id, child.id).is_primary is False
        assert [r.parent_id for r in primaries(session, child.id)] == [tom.id]

        assert len(outbox) == 1
        assert outbox[0].recipients == ['tom@x.com']
        assert 'Temporary Password' in outbox[0].body
        assert f'/verify-email?token={tom.email_verification_token}' in outbox[0].body

    def test_temporary_password_never_returned(self, client, admin, child, auth_headers, outbox):
        response = add_new_parent(client, auth_headers(admin), child.id)

        body_text = response.get_data(as_text=True)
        assert 'password' not in body_text.lower()

    def test_non_primary_by_default_with_contact_flags(self, client, session, admin, child, auth_headers):
        response = add_new_parent(client, auth_headers(admin), child.id)

        rel = response.get_json()['relationship']
        assert rel['isPrimary'] is False
        assert rel['isEmergencyContact'] is True
        assert rel['canPickup'] is True
        assert len(primaries(session, child.id)) == 1

    def test_explicit_false_flags_are_kept(self, client, admin, child, auth_headers):
        response = add_new_parent(
            client, auth_headers(admin), child.id, isEmergencyContact=False, canPickup=False
        )

        rel = response.get_json()['relationship']
        assert rel['isEmergencyContact'] is False
        assert rel['canPickup'] is False

    def test_existing_tenant_parent_is_reused(
        self, client, session, admin, child, second_parent, auth_headers, outbox
    ):
        response = add_new_parent(client, auth_headers(admin), child.id, email=second_parent.email.upper())

        assert response.status_code == 201
        assert response.get_json()['isNewParent'] is False
        assert session.query(User).filter(User.role == 'PARENT').count() == 2
        assert outbox == []

    def test_parent_already_linked(self, client, admin, child, parent_user, auth_headers):
        response = add_new_parent(client, auth_headers(admin), child.id, email=parent_user.email)

        assert response.status_code == 409
        assert response.get_json()['message'] == 'Parent is already associated with this child'

    def test_email_of_other_tenant_conflicts(self, client, session, admin, child, other_admin, auth_headers):
        response = add_new_parent(client, auth_headers(admin), child.id, email=other_admin.email)

        assert response.status_code == 409
        assert session.query(ParentChildRelationship).filter_by(child_id=child.id).count() == 1

    def test_child_of_other_tenant_not_found(self, client, session, admin, other_child, auth_headers):
        response = add_new_parent(client, auth_headers(admin), other_child.id)

        assert response.status_code == 404
        assert session.query(User).filter_by(email='tom@x.com').first() is None

    def test_invalid_relationship(self, client, admin, child, auth_headers):
        response = add_new_parent(client, auth_headers(admin), child.id, relationship='UNCLE')
        assert response.status_code == 400

    def test_non_boolean_flag_rejected(self, client, admin, child, auth_headers):
        response = add_new_parent(client, auth_headers(admin), child.id, isPrimary='yes')
        assert response.status_code == 400

    def test_parent_role_forbidden(self, client, child, parent_user, auth_headers):
        response = add_new_parent(client, auth_headers(parent_user), child.id)
        assert response.status_code == 403


class TestAddExistingParent:
    """Tests for POST /parent-relationships/add-existing-parent."""

    def test_add_existing_parent(self, client, session, educator, child, second_parent, auth_headers):
        response = add_existing_parent(client, auth_headers(educator), child.id, second_parent.id)

        assert response.status_code == 201
        rel = relationship_of(session, second_parent.id, child.id)
        assert rel.relationship_type == 'FATHER'
        assert rel.is_primary is False

    def test_duplicate_pair_conflicts(self, client, session, admin, child, second_parent, auth_headers):
        first = add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        second = add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)

        assert first.status_code == 201
        assert second.status_code == 409
        assert session.query(ParentChildRelationship).filter_by(
            parent_id=second_parent.id, child_id=child.id
        ).count() == 1

    def test_primary_moves_to_new_parent(
        self, client, session, admin, child, parent_user, second_parent, auth_headers
    ):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id, isPrimary=True)

        assert [r.parent_id for r in primaries(session, child.id)] == [second_parent.id]

    def test_explicit_non_primary_is_honoured(self, client, session, admin, child, second_parent, auth_headers):
        response = add_existing_parent(
            client, auth_headers(admin), child.id, second_parent.id, isPrimary=False
        )

        assert response.get_json()['relationship']['isPrimary'] is False
        assert len(primaries(session, child.id)) == 1

    def test_first_relationship_becomes_primary(self, client, session, admin, tenant, parent_user, auth_headers):
        from daycare.models import Child
        from datetime import date
        kid = Child(tenant_id=tenant.id, first_name='Noa', last_name='Lee', date_of_birth=date(2022, 2, 2))
        session.add(kid)
        session.commit()
        kid_id = kid.id

        add_existing_parent(client, auth_headers(admin), kid_id, parent_user.id, isPrimary=False)

        assert len(primaries(session, kid_id)) == 1

    def test_non_parent_user_not_found(self, client, admin, child, educator, auth_headers):
        response = add_existing_parent(client, auth_headers(admin), child.id, educator.id)
        assert response.status_code == 404

    def test_parent_of_other_tenant_not_found(self, client, admin, child, other_tenant, user_factory, auth_headers):
        stranger = user_factory(other_tenant, 'PARENT')

        response = add_existing_parent(client, auth_headers(admin), child.id, stranger.id)
        assert response.status_code == 404


class TestUpdateRelationship:
    """Tests for PUT /parent-relationships/<id>."""

    def test_promote_demotes_others(self, client, session, admin, child, parent_user, second_parent, auth_headers):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        rel_id = relationship_of(session, second_parent.id, child.id).id

        response = client.put(f'/parent-relationships/{rel_id}', json={'isPrimary': True}, headers=auth_headers(admin))

        assert response.status_code == 200
        assert [r.id for r in primaries(session, child.id)] == [rel_id]

    def test_partial_update_keeps_other_fields(self, client, session, admin, child, parent_user, auth_headers):
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.put(
            f'/parent-relationships/{rel_id}', json={'canPickup': False}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        rel = relationship_of(session, parent_user.id, child.id)
        assert rel.can_pickup is False
        assert rel.is_primary is True
        assert rel.relationship_type == 'MOTHER'

    def test_unsetting_primary_hands_flag_over(
        self, client, session, admin, child, parent_user, second_parent, auth_headers
    ):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.put(f'/parent-relationships/{rel_id}', json={'isPrimary': False}, headers=auth_headers(admin))

        assert response.status_code == 200
        assert [r.parent_id for r in primaries(session, child.id)] == [second_parent.id]

    def test_unsetting_sole_primary_rejected(self, client, session, admin, child, parent_user, auth_headers):
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.put(f'/parent-relationships/{rel_id}', json={'isPrimary': False}, headers=auth_headers(admin))

        assert response.status_code == 400
        assert len(primaries(session, child.id)) == 1

    def test_other_tenant_not_found(self, client, session, other_admin, child, parent_user, auth_headers):
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.put(f'/parent-relationships/{rel_id}', json={'isPrimary': True}, headers=auth_headers(other_admin))
        assert response.status_code == 404


class TestRemoveRelationship:
    """Tests for DELETE /parent-relationships/<id>."""

    def test_cannot_remove_last_parent(self, client, session, admin, child, parent_user, auth_headers):
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.delete(f'/parent-relationships/{rel_id}', headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cannot remove the last parent from a child'
        assert relationship_of(session, parent_user.id, child.id) is not None

    def test_remove_non_primary(self, client, session, admin, child, parent_user, second_parent, auth_headers):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        rel_id = relationship_of(session, second_parent.id, child.id).id

        response = client.delete(f'/parent-relationships/{rel_id}', headers=auth_headers(admin))

        assert response.status_code == 200
        assert relationship_of(session, second_parent.id, child.id) is None
        assert [r.parent_id for r in primaries(session, child.id)] == [parent_user.id]

    def test_removing_primary_promotes_oldest(
        self, client, session, admin, child, parent_user, second_parent, auth_headers
    ):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        add_new_parent(client, auth_headers(admin), child.id)
        rel_id = relationship_of(session, parent_user.id, child.id).id

        response = client.delete(f'/parent-relationships/{rel_id}', headers=auth_headers(admin))

        assert response.status_code == 200
        assert [r.parent_id for r in primaries(session, child.id)] == [second_parent.id]

    def test_scenario_new_primary_then_last_parent(
        self, client, session, admin, child, parent_user, auth_headers
    ):
        """Tom replaces Amy as primary; Tom alone cannot then be removed."""
        add_new_parent(client, auth_headers(admin), child.id, isPrimary=True)
        amy_rel = relationship_of(session, parent_user.id, child.id).id
        tom = session.query(User).filter_by(email='tom@x.com').first()
        tom_rel = relationship_of(session, tom.id, child.id).id

        assert client.delete(f'/parent-relationships/{amy_rel}', headers=auth_headers(admin)).status_code == 200
        response = client.delete(f'/parent-relationships/{tom_rel}', headers=auth_headers(admin))

        assert response.status_code == 400
        assert len(primaries(session, child.id)) == 1


class TestQueries:
    """Tests for the read endpoints."""

    def test_child_parents_primary_first(
        self, client, admin, child, parent_user, second_parent, auth_headers
    ):
        add_existing_parent(client, auth_headers(admin), child.id, second_parent.id)
        response = client.get(
            f'/parent-relationships/child/{child.id}/parents', headers=auth_headers(admin)
        )

        body = response.get_json()
        assert response.status_code == 200
        assert [p['parent']['id'] for p in body] == [parent_user.id, second_parent.id]
        assert body[0]['isPrimary'] is True

    def test_child_parents_other_tenant(self, client, other_admin, child, auth_headers):
        response = client.get(
            f'/parent-relationships/child/{child.id}/parents', headers=auth_headers(other_admin)
        )
        assert response.status_code == 404

    def test_available_parents_with_search(
        self, client, admin, child, parent_user, second_parent, auth_headers
    ):
        response = client.get('/parent-relationships/available-parents', headers=auth_headers(admin))
        body = response.get_json()

        assert [p['firstName'] for p in body] == ['Amy', 'Ben']
        assert body[0]['childrenCount'] == 1
        assert body[0]['children'][0]['id'] == child.id

        response = client.get('/parent-relationships/available-parents?search=bEn', headers=auth_headers(admin))
        assert [p['id'] for p in response.get_json()] == [second_parent.id]

    @pytest.mark.parametrize('search', ['lee', 'LEE'])
    def test_search_matches_last_name(self, client, admin, parent_user, second_parent, auth_headers, search):
        response = client.get(f'/parent-relationships/available-parents?search={search}', headers=auth_headers(admin))
        assert len(response.get_json()) == 2
