from __future__ import annotations

from flask import jsonify, request
from flask_login import login_required

from app.cemetery import cemetery_bp
from app.cemetery.payments import (
    concession_payment_by_id,
    delete_concession_payment,
    list_concession_payments,
    list_payments,
    record_concession_payment,
    update_concession_payment,
)
from app.cemetery.reader import query_occupancy
from app.cemetery.serializers import (
    burial_dict,
    cemetery_dict,
    concession_dict,
    grave_dict,
    occupancy_result_dict,
    parcel_dict,
    payment_dict,
    payment_result_dict,
    row_dict,
)
from app.cemetery.services import (
    burial_by_id,
    cemetery_by_id,
    concession_by_id,
    create_burial,
    create_cemetery,
    create_concession,
    create_grave,
    create_parcel,
    create_row,
    delete_burial,
    delete_cemetery,
    delete_concession,
    delete_grave,
    delete_parcel,
    delete_row,
    grave_by_id,
    list_burials,
    list_cemeteries,
    list_concessions,
    list_parcels,
    list_row_graves,
    list_rows,
    parcel_by_id,
    row_by_id,
    toggle_grave_maintenance,
    update_burial,
    update_cemetery,
    update_concession,
    update_grave,
    update_parcel,
    update_row,
)
from app.cemetery.validation import (
    parse_concession_status,
    parse_uuid,
    validate_list_filters,
    validate_occupancy_filters,
)
from app.core.permissions import require_membership, require_permission


def _ok(data, status_code: int = 200):
    return jsonify({"success": True, "data": data}), status_code


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _id(value: str, field_name: str = "id") -> str:
    return parse_uuid(value, field_name)


# Occupancy


@cemetery_bp.get("/graves/occupancy")
@login_required
@require_membership
@require_permission("cemeteries.view")
def graves_occupancy():
    filters = validate_occupancy_filters(request.args)
    return _ok(occupancy_result_dict(query_occupancy(filters)))


# Structure


@cemetery_bp.get("/")
@login_required
@require_membership
@require_permission("cemeteries.view")
def cemeteries_list():
    return _ok([cemetery_dict(cemetery) for cemetery in list_cemeteries()])


@cemetery_bp.post("/")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def cemeteries_create():
    return _ok(cemetery_dict(create_cemetery(_payload())), 201)


@cemetery_bp.get("/<cemetery_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def cemeteries_detail(cemetery_id: str):
    return _ok(cemetery_dict(cemetery_by_id(_id(cemetery_id))))


@cemetery_bp.put("/<cemetery_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def cemeteries_update(cemetery_id: str):
    return _ok(cemetery_dict(update_cemetery(_id(cemetery_id), _payload())))


@cemetery_bp.delete("/<cemetery_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.delete")
def cemeteries_delete(cemetery_id: str):
    return _ok(cemetery_dict(delete_cemetery(_id(cemetery_id))))


@cemetery_bp.get("/<cemetery_id>/parcels")
@login_required
@require_membership
@require_permission("cemeteries.view")
def parcels_list(cemetery_id: str):
    return _ok([parcel_dict(parcel) for parcel in list_parcels(_id(cemetery_id))])


@cemetery_bp.post("/<cemetery_id>/parcels")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def parcels_create(cemetery_id: str):
    return _ok(parcel_dict(create_parcel(_id(cemetery_id), _payload())), 201)


@cemetery_bp.get("/parcels/<parcel_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def parcels_detail(parcel_id: str):
    return _ok(parcel_dict(parcel_by_id(_id(parcel_id))))


@cemetery_bp.put("/parcels/<parcel_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def parcels_update(parcel_id: str):
    return _ok(parcel_dict(update_parcel(_id(parcel_id), _payload())))


@cemetery_bp.delete("/parcels/<parcel_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.delete")
def parcels_delete(parcel_id: str):
    return _ok(parcel_dict(delete_parcel(_id(parcel_id))))


@cemetery_bp.get("/parcels/<parcel_id>/rows")
@login_required
@require_membership
@require_permission("cemeteries.view")
def rows_list(parcel_id: str):
    return _ok([row_dict(row) for row in list_rows(_id(parcel_id))])


@cemetery_bp.post("/parcels/<parcel_id>/rows")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def rows_create(parcel_id: str):
    return _ok(row_dict(create_row(_id(parcel_id), _payload())), 201)


@cemetery_bp.get("/rows/<row_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def rows_detail(row_id: str):
    return _ok(row_dict(row_by_id(_id(row_id))))


@cemetery_bp.put("/rows/<row_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.manage")
def rows_update(row_id: str):
    return _ok(row_dict(update_row(_id(row_id), _payload())))


@cemetery_bp.delete("/rows/<row_id>")
@login_required
@require_membership
@require_permission("cemeteries.structure.delete")
def rows_delete(row_id: str):
    return _ok(row_dict(delete_row(_id(row_id))))


@cemetery_bp.get("/rows/<row_id>/graves")
@login_required
@require_membership
@require_permission("cemeteries.view")
def rows_graves(row_id: str):
    return _ok([grave_dict(grave) for grave in list_row_graves(_id(row_id))])


# Graves


@cemetery_bp.post("/graves")
@login_required
@require_membership
@require_permission("cemeteries.graves.manage")
def graves_create():
    return _ok(grave_dict(create_grave(_payload())), 201)


@cemetery_bp.get("/graves/<grave_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def graves_detail(grave_id: str):
    return _ok(grave_dict(grave_by_id(_id(grave_id))))


@cemetery_bp.put("/graves/<grave_id>")
@login_required
@require_membership
@require_permission("cemeteries.graves.manage")
def graves_update(grave_id: str):
    return _ok(grave_dict(update_grave(_id(grave_id), _payload())))


@cemetery_bp.delete("/graves/<grave_id>")
@login_required
@require_membership
@require_permission("cemeteries.graves.delete")
def graves_delete(grave_id: str):
    return _ok(grave_dict(delete_grave(_id(grave_id))))


@cemetery_bp.post("/graves/<grave_id>/maintenance")
@login_required
@require_membership
@require_permission("cemeteries.graves.manage")
def graves_maintenance(grave_id: str):
    return _ok(grave_dict(toggle_grave_maintenance(_id(grave_id), _payload())))


# Burials


@cemetery_bp.get("/burials")
@login_required
@require_membership
@require_permission("cemeteries.view")
def burials_list():
    filters = validate_list_filters(request.args, id_filters=(("graveId", "grave_id"), ("cemeteryId", "cemetery_id")))
    return _ok([burial_dict(burial) for burial in list_burials(filters)])


@cemetery_bp.post("/burials")
@login_required
@require_membership
@require_permission("cemeteries.burials.manage")
def burials_create():
    return _ok(burial_dict(create_burial(_payload())), 201)


@cemetery_bp.get("/burials/<burial_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def burials_detail(burial_id: str):
    return _ok(burial_dict(burial_by_id(_id(burial_id))))


@cemetery_bp.put("/burials/<burial_id>")
@login_required
@require_membership
@require_permission("cemeteries.burials.manage")
def burials_update(burial_id: str):
    return _ok(burial_dict(update_burial(_id(burial_id), _payload())))


@cemetery_bp.delete("/burials/<burial_id>")
@login_required
@require_membership
@require_permission("cemeteries.burials.delete")
def burials_delete(burial_id: str):
    return _ok(burial_dict(delete_burial(_id(burial_id))))


# Concessions


@cemetery_bp.get("/concessions")
@login_required
@require_membership
@require_permission("cemeteries.view")
def concessions_list():
    filters = validate_list_filters(
        request.args,
        id_filters=(("graveId", "grave_id"), ("cemeteryId", "cemetery_id"), ("clientId", "holder_client_id")),
        statuses=parse_concession_status,
    )
    return _ok([concession_dict(concession) for concession in list_concessions(filters)])


@cemetery_bp.post("/concessions")
@login_required
@require_membership
@require_permission("cemeteries.concessions.manage")
def concessions_create():
    return _ok(concession_dict(create_concession(_payload())), 201)


@cemetery_bp.get("/concessions/<concession_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def concessions_detail(concession_id: str):
    return _ok(concession_dict(concession_by_id(_id(concession_id))))


@cemetery_bp.put("/concessions/<concession_id>")
@login_required
@require_membership
@require_permission("cemeteries.concessions.manage")
def concessions_update(concession_id: str):
    return _ok(concession_dict(update_concession(_id(concession_id), _payload())))


@cemetery_bp.delete("/concessions/<concession_id>")
@login_required
@require_membership
@require_permission("cemeteries.concessions.delete")
def concessions_delete(concession_id: str):
    return _ok(concession_dict(delete_concession(_id(concession_id))))


@cemetery_bp.get("/concessions/<concession_id>/payments")
@login_required
@require_membership
@require_permission("cemeteries.view")
def concession_payments_list(concession_id: str):
    return _ok([payment_dict(payment) for payment in list_concession_payments(_id(concession_id))])


@cemetery_bp.post("/concessions/<concession_id>/payments")
@login_required
@require_membership
@require_permission("cemeteries.payments.manage")
def concession_payments_create(concession_id: str):
    payload = _payload()
    result = record_concession_payment(_id(concession_id), payload)
    requested = payload.get("createAccountingPayment", True) is True
    return _ok(payment_result_dict(result, requested), 201)


@cemetery_bp.get("/concessions/payments")
@login_required
@require_membership
@require_permission("cemeteries.view")
def payments_list():
    filters = validate_list_filters(request.args, id_filters=(("concessionId", "concession_id"),))
    return _ok([payment_dict(payment) for payment in list_payments(filters.get("concession_id"))])


@cemetery_bp.get("/concessions/payments/<payment_id>")
@login_required
@require_membership
@require_permission("cemeteries.view")
def payments_detail(payment_id: str):
    return _ok(payment_dict(concession_payment_by_id(_id(payment_id))))


@cemetery_bp.put("/concessions/payments/<payment_id>")
@login_required
@require_membership
@require_permission("cemeteries.payments.manage")
def payments_update(payment_id: str):
    return _ok(payment_dict(update_concession_payment(_id(payment_id), _payload())))


@cemetery_bp.delete("/concessions/payments/<payment_id>")
@login_required
@require_membership
@require_permission("cemeteries.payments.delete")
def payments_delete(payment_id: str):
    return _ok(payment_dict(delete_concession_payment(_id(payment_id))))
