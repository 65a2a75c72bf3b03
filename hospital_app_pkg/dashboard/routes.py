# hospital_app_pkg/dashboard/routes.py
from flask import Blueprint, jsonify
from sqlalchemy import func
from .. import db
from ..models import Patient, Bed, Appointment, Alert, User, RevenueTransaction, QueueEntry
from ..utils import permission_required, utc_day_bounds, utc_today
from ..alerts.routes import active_alerts_query
from ..activities.routes import recent_activities
from ..queue.stages import QueueStatus

dashboard_bp = Blueprint('dashboard_bp', __name__)

DASHBOARD_FEED_SIZE = 10


@dashboard_bp.route('/dashboard/stats', methods=['GET'])
@permission_required('dashboard:read')
def get_dashboard_stats():
    """
    Headline counters for the staff dashboard. Computed on every request.
    """
    today = utc_today()
    day_start, day_end = utc_day_bounds(today)

    total_patients = Patient.query.filter(Patient.status == 'active').count()

    total_beds = Bed.query.count()
    occupied_beds = Bed.query.filter(Bed.status == 'occupied').count()
    occupancy_rate = round(occupied_beds / total_beds * 100, 1) if total_beds else 0.0

    today_appointments = Appointment.query.filter(
        Appointment.start_datetime >= day_start,
        Appointment.start_datetime < day_end,
        Appointment.status != 'cancelled',
    ).count()

    active_alerts = Alert.query.filter(Alert.status == 'active').count()
    staff_count = User.query.count()

    today_revenue = db.session.query(func.coalesce(func.sum(RevenueTransaction.amount), 0)).filter(
        RevenueTransaction.transaction_date == today,
        RevenueTransaction.payment_status == 'paid',
    ).scalar()

    patients_waiting = QueueEntry.query.filter(
        QueueEntry.check_in_time >= day_start,
        QueueEntry.check_in_time < day_end,
        QueueEntry.status == QueueStatus.WAITING.value,
    ).count()

    return jsonify({
        "total_patients": total_patients,
        "active_beds": f"{occupied_beds}/{total_beds}",
        "occupied_beds": occupied_beds,
        "total_beds": total_beds,
        "bed_occupancy_rate": occupancy_rate,
        "today_appointments": today_appointments,
        "active_alerts": active_alerts,
        "staff_count": staff_count,
        "today_revenue": float(today_revenue or 0),
        "patients_waiting": patients_waiting,
    }), 200


@dashboard_bp.route('/dashboard/activities', methods=['GET'])
@permission_required('dashboard:read')
def get_dashboard_activities():
    return jsonify({"activities": [a.to_dict() for a in recent_activities(DASHBOARD_FEED_SIZE)]}), 200


@dashboard_bp.route('/dashboard/alerts', methods=['GET'])
@permission_required('dashboard:read')
def get_dashboard_alerts():
    alerts = active_alerts_query().limit(DASHBOARD_FEED_SIZE).all()
    return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200
