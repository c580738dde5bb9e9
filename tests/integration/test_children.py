"""
Integration tests for child enrollment, listing, updates and withdrawal.
"""

import pytest

from daycare.models import Child, Classroom, ClassroomAssignment, ParentChildRelationship, User


def enrollment(**overrides):
    body = {
        'firstName': 'Noah',
        'lastName': 'Kim',
        'dateOfBirth': '2022-03-10',
        'gender': 'MALE',
        'parentDetails': {
            'firstName': 'Sara',
            'lastName': 'Kim',
            'email': 'sara.kim@test.com',
            'phone': '555-0199',
            'relationship': 'MOTHER',
        },
    }
    body.update(overrides)
    return body


def enroll(client, headers, **overrides):
    return client.post('/children', json=enrollment(**overrides), headers=headers)


def enrollment_count(session, classroom_id):
    session.expire_all()
    return session.get(Classroom, classroom_id).current_enrollment


class TestCreateChild:
    """Tests for POST /children."""

    def test_enroll_with_new_parent(self, client, session, admin, classroom, auth_headers, outbox):
        response = enroll(
            client, auth_headers(admin),
            classroomId=classroom.id,
            medicalInfo={'bloodType': 'O+', 'allergies': ['peanuts'], 'doctorName': 'Dr. Who'},
            emergencyContacts=[
                {'name': 'Grandma Kim', 'relationship': 'Grandmother', 'phone': '555-0111',
                 'isAuthorizedPickup': True},
            ],
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body['status'] == 'ACTIVE'
        assert body['classroom']['id'] == classroom.id
        assert body['medicalInformation']['allergies'] == ['peanuts']
        assert body['emergencyContacts'][0]['relationship'] == 'Grandmother'
        assert body['emergencyContacts'][0]['isAuthorizedPickup'] is True

        [parent] = body['parents']
        assert parent['email'] == 'sara.kim@test.com'
        assert parent['isPrimary'] is True
        assert parent['isEmergencyContact'] is True
        assert parent['canPickup'] is True

        account = session.query(User).filter_by(email='sara.kim@test.com').one()
        assert account.role == 'PARENT'
        assert account.tenant_id == admin.tenant_id
        assert account.email_verified is False

        assert enrollment_count(session, classroom.id) == 1
        assert len(outbox) == 1
        assert outbox[0].recipients == ['sara.kim@test.com']

    def test_existing_parent_is_reused(self, client, session, admin, parent_user, auth_headers, outbox):
        details = {
            'firstName': 'Ignored', 'lastName': 'Name',
            'email': parent_user.email, 'relationship': 'MOTHER',
        }
        response = enroll(client, auth_headers(admin), parentDetails=details)

        assert response.status_code == 201
        assert response.get_json()['parents'][0]['id'] == parent_user.id
        assert session.query(User).filter_by(email=parent_user.email).count() == 1
        assert outbox == []

    def test_parent_email_from_other_tenant(self, client, session, admin, other_admin, auth_headers):
        details = {
            'firstName': 'X', 'lastName': 'Y',
            'email': other_admin.email, 'relationship': 'FATHER',
        }
        response = enroll(client, auth_headers(admin), parentDetails=details)

        assert response.status_code == 409
        assert session.query(Child).count() == 0

    def test_classroom_full(self, client, session, admin, classroom, auth_headers):
        for i in range(2):
            details = {
                'firstName': 'P', 'lastName': str(i),
                'email': f'parent{i}@test.com', 'relationship': 'FATHER',
            }
            assert enroll(client, auth_headers(admin), classroomId=classroom.id,
                          parentDetails=details).status_code == 201

        response = enroll(client, auth_headers(admin), classroomId=classroom.id)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Classroom is at full capacity'
        assert enrollment_count(session, classroom.id) == 2
        assert session.query(User).filter_by(email='sara.kim@test.com').first() is None

    def test_classroom_of_other_tenant(self, client, session, admin, other_classroom, auth_headers):
        response = enroll(client, auth_headers(admin), classroomId=other_classroom.id)

        assert response.status_code == 404
        assert session.query(Child).count() == 0

    @pytest.mark.parametrize('overrides', [
        {'dateOfBirth': '10/03/2022'},
        {'gender': 'UNKNOWN'},
        {'parentDetails': {'firstName': 'A', 'lastName': 'B', 'email': 'bad', 'relationship': 'MOTHER'}},
        {'parentDetails': {'firstName': 'A', 'lastName': 'B', 'email': 'a@b.com', 'relationship': 'UNCLE'}},
        {'medicalInfo': {'allergies': 'peanuts'}},
        {'emergencyContacts': [{'name': 'No Phone', 'relationship': 'Aunt'}]},
    ])
    def test_invalid_payload(self, client, admin, auth_headers, overrides):
        assert enroll(client, auth_headers(admin), **overrides).status_code == 400

    def test_educator_can_enroll(self, client, educator, auth_headers):
        assert enroll(client, auth_headers(educator)).status_code == 201

    def test_parent_cannot_enroll(self, client, parent_user, auth_headers):
        assert enroll(client, auth_headers(parent_user)).status_code == 403


class TestListAndGet:
    """Tests for GET /children and GET /children/<id>."""

    def test_pagination(self, client, admin, auth_headers):
        for i in range(3):
            details = {
                'firstName': 'P', 'lastName': str(i),
                'email': f'list{i}@test.com', 'relationship': 'FATHER',
            }
            enroll(client, auth_headers(admin), firstName=f'Kid{i}', parentDetails=details)

        response = client.get('/children?page=2&limit=2', headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.get_json()
        assert len(body['children']) == 1
        assert body['pagination'] == {'total': 3, 'page': 2, 'limit': 2, 'totalPages': 2}

    def test_filters(self, client, admin, child, classroom, auth_headers):
        enroll(client, auth_headers(admin), classroomId=classroom.id, status='WAITLIST')

        in_room = client.get(f'/children?classroomId={classroom.id}', headers=auth_headers(admin)).get_json()
        waitlist = client.get('/children?status=WAITLIST', headers=auth_headers(admin)).get_json()

        assert [c['firstName'] for c in in_room['children']] == ['Noah']
        assert [c['firstName'] for c in waitlist['children']] == ['Noah']

    def test_other_tenant_children_hidden(self, client, other_admin, child, auth_headers):
        listing = client.get('/children', headers=auth_headers(other_admin)).get_json()
        assert listing['children'] == []

        response = client.get(f'/children/{child.id}', headers=auth_headers(other_admin))
        assert response.status_code == 404

    def test_get_child_detail(self, client, admin, child, parent_user, auth_headers):
        response = client.get(f'/children/{child.id}', headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.get_json()
        assert body['dateOfBirth'] == '2021-05-04'
        assert body['parents'][0]['id'] == parent_user.id
        assert body['medicalInformation'] is None
        assert body['emergencyContacts'] == []

    def test_invalid_page(self, client, admin, auth_headers):
        assert client.get('/children?page=0', headers=auth_headers(admin)).status_code == 400


class TestUpdateChild:
    """Tests for PUT /children/<id>."""

    def test_update_fields_and_medical_info(self, client, admin, child, auth_headers):
        response = client.put(f'/children/{child.id}', json={
            'firstName': 'Maya',
            'status': 'INACTIVE',
            'medicalInfo': {'allergies': ['milk']},
        }, headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.get_json()
        assert body['firstName'] == 'Maya'
        assert body['status'] == 'INACTIVE'
        assert body['medicalInformation']['allergies'] == ['milk']

    def test_classroom_change_moves_seat(self, client, session, admin, tenant, child, classroom, auth_headers):
        second = Classroom(tenant_id=tenant.id, name='Preschool', capacity=10)
        session.add(second)
        session.commit()
        second_id = second.id

        client.put(f'/children/{child.id}', json={'classroomId': classroom.id}, headers=auth_headers(admin))
        response = client.put(f'/children/{child.id}', json={'classroomId': second_id}, headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.get_json()['classroom']['id'] == second_id
        assert enrollment_count(session, classroom.id) == 0
        assert enrollment_count(session, second_id) == 1

        active = session.query(ClassroomAssignment).filter_by(child_id=child.id, is_active=True).all()
        assert [a.classroom_id for a in active] == [second_id]

    def test_empty_name_rejected(self, client, admin, child, auth_headers):
        response = client.put(f'/children/{child.id}', json={'firstName': ' '}, headers=auth_headers(admin))
        assert response.status_code == 400

    def test_unknown_child(self, client, admin, auth_headers):
        response = client.put('/children/missing', json={'notes': 'x'}, headers=auth_headers(admin))
        assert response.status_code == 404


class TestDeleteChild:
    """Tests for DELETE /children/<id>."""

    def test_soft_delete_releases_seat(self, client, session, admin, child, classroom, auth_headers):
        client.put(f'/children/{child.id}', json={'classroomId': classroom.id}, headers=auth_headers(admin))

        response = client.delete(f'/children/{child.id}', headers=auth_headers(admin))

        assert response.status_code == 200
        session.expire_all()
        row = session.get(Child, child.id)
        assert row.status == 'WITHDRAWN'
        assert row.deleted_at is not None
        assert session.query(ParentChildRelationship).filter_by(child_id=child.id).count() == 1
        assert enrollment_count(session, classroom.id) == 0

        assert client.get(f'/children/{child.id}', headers=auth_headers(admin)).status_code == 404

    def test_educator_cannot_delete(self, client, educator, child, auth_headers):
        response = client.delete(f'/children/{child.id}', headers=auth_headers(educator))
        assert response.status_code == 403
