# hospital_app_pkg/revenue/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import func
from .. import db
from ..models import RevenueTransaction, Patient, Appointment
from ..utils import permission_required, get_json_body, get_limit_offset
from ..validation import Field, validate_payload, parse_iso_date

revenue_bp = Blueprint('revenue_bp', __name__)

REVENUE_TYPES = ['consultation', 'procedure', 'medication', 'lab_test', 'imaging', 'bed_charges', 'other']
PAYMENT_METHODS = ['cash', 'card', 'insurance', 'bank_transfer', 'other']
PAYMENT_STATUSES = ['pending', 'paid', 'partially_paid', 'refunded', 'disputed']

REVENUE_SCHEMA = {
    'transaction_date': Field('date', nullable=False),
    'revenue_type': Field('string', required=True, choices=REVENUE_TYPES),
    'amount': Field('number', required=True),
    'currency': Field('string', nullable=False, min_length=1),
    'patient_id': Field('uuid'),
    'appointment_id': Field('uuid'),
    'payment_method': Field('string', choices=PAYMENT_METHODS),
    'payment_status': Field('string', nullable=False, choices=PAYMENT_STATUSES),
    'invoice_number': Field('string'),
    'description': Field('string'),
}


def _date_range_filter(query):
    """Applies ?start_date= / ?end_date= (inclusive). Returns (query, error_response)."""
    bounds = {}
    for param in ('start_date', 'end_date'):
        value = request.args.get(param)
        if value:
            bounds[param] = parse_iso_date(value)
            if not bounds[param]:
                return None, (jsonify({"error": {param: "Must be a date in YYYY-MM-DD format."}}), 400)

    if bounds.get('start_date'):
        query = query.filter(RevenueTransaction.transaction_date >= bounds['start_date'])
    if bounds.get('end_date'):
        query = query.filter(RevenueTransaction.transaction_date <= bounds['end_date'])
    return query, None


def _missing_reference(data):
    if data.get('patient_id') and not db.session.get(Patient, data['patient_id']):
        return jsonify({"error": "Patient not found."}), 404
    if data.get('appointment_id') and not db.session.get(Appointment, data['appointment_id']):
        return jsonify({"error": "Appointment not found."}), 404
    return None


@revenue_bp.route('/revenue', methods=['GET'])
@permission_required('revenue:read')
def get_revenue():
    limit, _ = get_limit_offset()
    query, error = _date_range_filter(RevenueTransaction.query)
    if error:
        return error

    payment_status = request.args.get('payment_status')
    if payment_status:
        query = query.filter(RevenueTransaction.payment_status == payment_status)

    transactions = query.order_by(
        RevenueTransaction.transaction_date.desc(), RevenueTransaction.created_at.desc()
    ).limit(limit).all()
    return jsonify({"revenue": [t.to_dict() for t in transactions]}), 200


@revenue_bp.route('/revenue/summary', methods=['GET'])
@permission_required('revenue:read')
def get_revenue_summary():
    """Paid revenue grouped by type, largest total first."""
    query = db.session.query(
        RevenueTransaction.revenue_type,
        func.sum(RevenueTransaction.amount).label('total'),
        func.count(RevenueTransaction.id).label('count'),
    ).filter(RevenueTransaction.payment_status == 'paid')
    query, error = _date_range_filter(query)
    if error:
        return error

    rows = query.group_by(RevenueTransaction.revenue_type).order_by(func.sum(RevenueTransaction.amount).desc()).all()
    summary = [
        {"revenue_type": revenue_type, "total": float(total or 0), "count": count}
        for revenue_type, total, count in rows
    ]
    return jsonify({
        "summary": summary,
        "grand_total": round(sum(row["total"] for row in summary), 2),
    }), 200


@revenue_bp.route('/revenue', methods=['POST'])
@permission_required('revenue:write')
def create_revenue():
    data, errors = validate_payload(get_json_body(), REVENUE_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400
    missing = _missing_reference(data)
    if missing:
        return missing

    transaction = RevenueTransaction(created_by=g.current_user.id, **data)
    db.session.add(transaction)
    db.session.commit()
    current_app.logger.info(
        f"Revenue {transaction.id} recorded: {transaction.amount} {transaction.currency} ({transaction.payment_status})"
    )
    return jsonify(transaction.to_dict()), 201


@revenue_bp.route('/revenue/<string:transaction_id>', methods=['PUT'])
@permission_required('revenue:write')
def update_revenue(transaction_id):
    transaction = db.get_or_404(RevenueTransaction, transaction_id, description="Revenue record not found.")
    changes, errors = validate_payload(get_json_body(), REVENUE_SCHEMA, partial=True)
    if errors:
        return jsonify({"error": errors}), 400
    if not changes:
        return jsonify({"error": "No fields to update."}), 400
    missing = _missing_reference(changes)
    if missing:
        return missing

    for field, value in changes.items():
        setattr(transaction, field, value)
    db.session.commit()
    return jsonify(transaction.to_dict()), 200
