from decimal import Decimal

from conftest import payer_payload


def test_dashboard_summary(panitia_client, rt, other_rt, money_rate, rice_rate):
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 4, 200000, rate_id=money_rate.id))
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 1, 45000, rate_id=rice_rate.id))
    panitia_client.post('/muzakki', json=payer_payload(other_rt.id, 2, 4, zakat_kind='beras'))
    panitia_client.post('/infak', json={'amount': 10000})

    response = panitia_client.get('/dashboard')
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["total_payers"] == 3
    # 180000 money + 45000 rice rate + 5 kg legacy rice at 12000/kg
    assert data["total_zakat"] == 285000
    assert data["not_paid_in_full"] == 1
    assert data["total_infak"] == 30000
    assert len(data["recent_payers"]) == 3
    assert [row["number"] for row in data["rt_stats"]] == ["01", "02"]


def test_dashboard_with_empty_ledger(panitia_client):
    data = panitia_client.get('/dashboard').get_json()["data"]
    assert data["total_payers"] == 0
    assert data["total_zakat"] == 0
    assert data["recent_payers"] == []


def test_laporan_per_rt(panitia_client, rt, other_rt, money_rate, rice_rate):
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 2, 100000, rate_id=money_rate.id))
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 2, 90000, rate_id=rice_rate.id))

    data = panitia_client.get('/laporan').get_json()["data"]
    rows = {row["rt_number"]: row for row in data["per_rt"]}

    assert rows["01"]["total_payers"] == 2
    assert Decimal(str(rows["01"]["total_rice_kg"])) == Decimal("5")
    assert rows["01"]["total_money_obligation"] == 90000
    assert rows["01"]["total_collected"] == 190000
    assert rows["01"]["total_change"] == 10000
    assert rows["02"]["total_payers"] == 0
    assert data["total_infak"] == 10000


def test_laporan_keeps_kg_payments_apart(panitia_client, rt, money_rate):
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 2, 100000, rate_id=money_rate.id))
    # legacy rice: 2 heads owe 5 kg, 6 kg handed over
    panitia_client.post('/muzakki', json=payer_payload(rt.id, 2, 6, zakat_kind='beras'))

    row = panitia_client.get('/laporan').get_json()["data"]["per_rt"][0]
    assert row["total_collected"] == 100000
    assert row["total_change"] == 10000
    assert row["total_collected_kg"] == 6
    assert row["total_change_kg"] == 1
