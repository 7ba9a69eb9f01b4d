"""
Proof photo handling for disbursements.
"""

import os
from io import BytesIO

import pytest

from conftest import payer_payload
from zakat.extensions import db
from zakat.models import Disbursement
from zakat.services.upload_service import STAGING_PREFIX

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


@pytest.fixture
def beneficiary_id(panitia_client, rt, money_rate):
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 2, 90000, rate_id=money_rate.id))
    response = panitia_client.post('/mustahik', json={'name': 'Mbah Sarni', 'category': 'miskin'})
    assert response.status_code == 201
    return response.get_json()["data"]["id"]


def _upload_dir(app):
    return app.config['UPLOAD_FOLDER']


def _stored_files(app):
    folder = _upload_dir(app)
    return set(os.listdir(folder)) if os.path.isdir(folder) else set()


def _form(beneficiary_id, amount, photo=None, filename='bukti.png', mimetype='image/png'):
    data = {'beneficiary_id': str(beneficiary_id), 'zakat_kind': 'uang', 'amount': str(amount)}
    if photo is not None:
        data['bukti_foto'] = (BytesIO(photo), filename, mimetype)
    return data


def test_create_with_photo_stores_final_file(app, panitia_client, beneficiary_id):
    before = _stored_files(app)
    response = panitia_client.post(
        '/distribusi', data=_form(beneficiary_id, 50000, PNG_BYTES), content_type='multipart/form-data',
    )
    assert response.status_code == 201
    photo = response.get_json()["data"]["proof_photo"]
    assert photo.startswith('bukti-') and photo.endswith('.png')

    added = _stored_files(app) - before
    assert added == {photo}
    assert not any(name.startswith(STAGING_PREFIX) for name in _stored_files(app))

    served = panitia_client.get(f'/distribusi/uploads/{photo}')
    assert served.status_code == 200
    assert served.data == PNG_BYTES


def test_non_image_is_rejected_without_row(app, panitia_client, beneficiary_id):
    before = _stored_files(app)
    response = panitia_client.post(
        '/distribusi',
        data=_form(beneficiary_id, 10000, b'hello', filename='catatan.txt', mimetype='text/plain'),
        content_type='multipart/form-data',
    )
    assert response.status_code == 400
    db.session.expire_all()
    assert db.session.query(Disbursement).count() == 0
    assert _stored_files(app) == before


def test_rejected_allocation_leaves_no_file(app, panitia_client, beneficiary_id):
    before = _stored_files(app)
    response = panitia_client.post(
        '/distribusi', data=_form(beneficiary_id, 1000000, PNG_BYTES), content_type='multipart/form-data',
    )
    assert response.status_code == 400
    assert "Insufficient" in response.get_json()["message"]
    assert _stored_files(app) == before


def test_empty_file_is_rejected(panitia_client, beneficiary_id):
    response = panitia_client.post(
        '/distribusi', data=_form(beneficiary_id, 10000, b''), content_type='multipart/form-data',
    )
    assert response.status_code == 400


def test_replacing_proof_removes_old_file(app, panitia_client, beneficiary_id):
    created = panitia_client.post(
        '/distribusi', data=_form(beneficiary_id, 20000, PNG_BYTES), content_type='multipart/form-data',
    ).get_json()["data"]
    old_photo = created["proof_photo"]

    response = panitia_client.post(
        f'/distribusi/{created["id"]}/upload-proof',
        data={'bukti_foto': (BytesIO(PNG_BYTES), 'baru.jpg', 'image/jpeg')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 200
    new_photo = response.get_json()["data"]["proof_photo"]
    assert new_photo != old_photo and new_photo.endswith('.jpg')

    files = _stored_files(app)
    assert new_photo in files
    assert old_photo not in files

    missing = panitia_client.post(f'/distribusi/{created["id"]}/upload-proof', data={}, content_type='multipart/form-data')
    assert missing.status_code == 400


def test_delete_removes_photo(app, panitia_client, beneficiary_id):
    created = panitia_client.post(
        '/distribusi', data=_form(beneficiary_id, 20000, PNG_BYTES), content_type='multipart/form-data',
    ).get_json()["data"]

    assert panitia_client.delete(f'/distribusi/{created["id"]}').status_code == 200
    assert created["proof_photo"] not in _stored_files(app)


def test_delivered_disbursement_cannot_be_deleted(panitia_client, beneficiary_id):
    created = panitia_client.post(
        '/distribusi', json={'beneficiary_id': beneficiary_id, 'zakat_kind': 'uang', 'amount': 10000},
    ).get_json()["data"]
    assert created["proof_photo"] is None

    response = panitia_client.put(f'/distribusi/{created["id"]}/status', json={'status': 'disalurkan'})
    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "disalurkan"

    assert panitia_client.delete(f'/distribusi/{created["id"]}').status_code == 409
    assert panitia_client.put(f'/distribusi/{created["id"]}/status', json={}).status_code == 400
