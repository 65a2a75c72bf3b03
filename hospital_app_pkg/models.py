from . import db # Imports the db instance from __init__.py
from werkzeug.security import generate_password_hash, check_password_hash
import datetime
import uuid

from .permissions import permissions_for_roles
from .queue.stages import ACTIVE_STATUSES, QueueStage, QueueStatus


def _uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


def _float(value):
    return float(value) if value is not None else None


def _utc_date():
    return datetime.datetime.utcnow().date()


ACTIVE_QUEUE_CONDITION = "status IN ({})".format(", ".join(f"'{s}'" for s in ACTIVE_STATUSES))

# --- Model Definitions ---

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    hashed_password = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    employee_id = db.Column(db.String(50), unique=True, nullable=True)
    department = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    roles = db.relationship('UserRole', backref='user', lazy='selectin', cascade='all, delete-orphan')

    def set_password(self, password):
        self.hashed_password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.hashed_password, password)

    @property
    def role_names(self):
        return sorted(r.role for r in self.roles)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def get_permissions(self):
        return sorted(permissions_for_roles(self.role_names))

    def to_dict(self, include_permissions=False):
        data = {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "employee_id": self.employee_id,
            "department": self.department,
            "phone": self.phone,
            "is_active": self.is_active,
            "roles": self.role_names,
            "created_at": _iso(self.created_at),
        }
        if include_permissions:
            data["permissions"] = self.get_permissions()
        return data

    def __repr__(self):
        return f'<User {self.email}>'


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role', name='uq_user_role'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role = db.Column(db.String(30), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    def __repr__(self):
        return f'<UserRole {self.user_id}:{self.role}>'


class TokenBlacklist(db.Model):
    """
    Revoked JWT ids (written on sign-out).
    """
    __tablename__ = 'token_blacklist'
    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, unique=True, index=True) # JWT ID
    expires_at = db.Column(db.DateTime, nullable=False) # Should match token's expiry

    def __repr__(self):
        return f'<TokenBlacklist jti:{self.jti}>'


class Patient(db.Model):
    __tablename__ = 'patients'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    patient_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    address = db.Column(db.Text, nullable=True)
    emergency_contact_name = db.Column(db.String(200), nullable=True)
    emergency_contact_phone = db.Column(db.String(50), nullable=True)
    allergies = db.Column(db.JSON, default=list)
    insurance_info = db.Column(db.JSON, default=dict)
    status = db.Column(db.String(20), nullable=False, default='active', index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self):
        if self.date_of_birth:
            today = datetime.date.today()
            return today.year - self.date_of_birth.year - \
                   ((today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day))
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "patient_number": self.patient_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": _iso(self.date_of_birth),
            "age": self.age,
            "gender": self.gender,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "emergency_contact_name": self.emergency_contact_name,
            "emergency_contact_phone": self.emergency_contact_phone,
            "allergies": self.allergies or [],
            "insurance_info": self.insurance_info or {},
            "status": self.status,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Patient {self.patient_number} - {self.first_name} {self.last_name}>'


class QueueEntry(db.Model):
    __tablename__ = 'patient_queue'
    __table_args__ = (
        # One active visit per patient.
        db.Index(
            'idx_unique_active_queue', 'patient_id', unique=True,
            postgresql_where=db.text(ACTIVE_QUEUE_CONDITION),
            sqlite_where=db.text(ACTIVE_QUEUE_CONDITION),
        ),
        db.CheckConstraint('priority >= 1 AND priority <= 5', name='ck_queue_priority_range'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True)
    queue_number = db.Column(db.Integer, nullable=False)
    department = db.Column(db.String(100), nullable=False, index=True)
    service_type = db.Column(db.String(100), default='consultation')
    priority = db.Column(db.Integer, nullable=False, default=3)
    status = db.Column(db.String(30), nullable=False, default=QueueStatus.WAITING.value, index=True)
    current_stage = db.Column(db.String(30), nullable=False, default=QueueStage.WAITING.value)
    check_in_time = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)
    called_time = db.Column(db.DateTime, nullable=True)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    serving_staff_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    room_number = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    patient = db.relationship('Patient', backref=db.backref('queue_entries', lazy='dynamic', passive_deletes=True))
    serving_staff = db.relationship('User', foreign_keys=[serving_staff_id])

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    def to_dict(self):
        data = {
            "id": self.id,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "queue_number": self.queue_number,
            "department": self.department,
            "service_type": self.service_type,
            "priority": self.priority,
            "status": self.status,
            "current_stage": self.current_stage,
            "check_in_time": _iso(self.check_in_time),
            "called_time": _iso(self.called_time),
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "serving_staff_id": self.serving_staff_id,
            "room_number": self.room_number,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if self.patient:
            data["patient_name"] = self.patient.full_name
            data["patient_number"] = self.patient.patient_number
        if self.serving_staff:
            data["serving_staff_name"] = self.serving_staff.full_name
        return data

    def __repr__(self):
        return f'<QueueEntry #{self.queue_number} {self.department} patient={self.patient_id} {self.status}/{self.current_stage}>'


class TriageAssessment(db.Model):
    __tablename__ = 'triage_assessments'
    __table_args__ = (
        db.CheckConstraint('triage_level >= 1 AND triage_level <= 5', name='ck_triage_level_range'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True)
    queue_id = db.Column(db.String(36), db.ForeignKey('patient_queue.id', ondelete='SET NULL'), nullable=True)
    triage_level = db.Column(db.Integer, nullable=False, index=True)
    triage_category = db.Column(db.String(50), nullable=False)
    chief_complaint = db.Column(db.Text, nullable=False)
    presenting_symptoms = db.Column(db.JSON, default=list)
    pain_level = db.Column(db.Integer, nullable=True)
    temperature = db.Column(db.Float, nullable=True)
    blood_pressure_systolic = db.Column(db.Integer, nullable=True)
    blood_pressure_diastolic = db.Column(db.Integer, nullable=True)
    pulse_rate = db.Column(db.Integer, nullable=True)
    respiratory_rate = db.Column(db.Integer, nullable=True)
    oxygen_saturation = db.Column(db.Float, nullable=True)
    weight = db.Column(db.Float, nullable=True)
    height = db.Column(db.Float, nullable=True)
    blood_glucose = db.Column(db.Float, nullable=True)
    allergies = db.Column(db.JSON, default=list)
    current_medications = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text, nullable=True)
    assessed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    assessed_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    patient = db.relationship('Patient', backref=db.backref('triage_assessments', lazy='dynamic', passive_deletes=True))
    queue_entry = db.relationship('QueueEntry', backref=db.backref('triage_assessments', lazy='dynamic'))
    assessor = db.relationship('User', foreign_keys=[assessed_by])

    def to_dict(self):
        data = {
            "id": self.id,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "queue_id": self.queue_id,
            "triage_level": self.triage_level,
            "triage_category": self.triage_category,
            "chief_complaint": self.chief_complaint,
            "presenting_symptoms": self.presenting_symptoms or [],
            "pain_level": self.pain_level,
            "temperature": self.temperature,
            "blood_pressure_systolic": self.blood_pressure_systolic,
            "blood_pressure_diastolic": self.blood_pressure_diastolic,
            "pulse_rate": self.pulse_rate,
            "respiratory_rate": self.respiratory_rate,
            "oxygen_saturation": self.oxygen_saturation,
            "weight": self.weight,
            "height": self.height,
            "blood_glucose": self.blood_glucose,
            "allergies": self.allergies or [],
            "current_medications": self.current_medications or [],
            "notes": self.notes,
            "assessed_by": self.assessed_by,
            "assessed_at": _iso(self.assessed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if self.patient:
            data["patient_name"] = self.patient.full_name
            data["patient_number"] = self.patient.patient_number
        if self.assessor:
            data["assessor_name"] = self.assessor.full_name
        return data

    def __repr__(self):
        return f'<TriageAssessment {self.id} level={self.triage_level} patient={self.patient_id}>'


class Bed(db.Model):
    __tablename__ = 'beds'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    bed_number = db.Column(db.String(50), unique=True, nullable=False)
    room_number = db.Column(db.String(20), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    bed_type = db.Column(db.String(30), nullable=False, default='standard')
    status = db.Column(db.String(30), nullable=False, default='available', index=True)
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id', ondelete='SET NULL'), nullable=True)
    admitted_at = db.Column(db.DateTime, nullable=True)
    expected_discharge = db.Column(db.DateTime, nullable=True)
    daily_rate = db.Column(db.Numeric(10, 2), default=0)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    patient = db.relationship('Patient')

    def to_dict(self):
        return {
            "id": self.id,
            "bed_number": self.bed_number,
            "room_number": self.room_number,
            "department": self.department,
            "bed_type": self.bed_type,
            "status": self.status,
            "patient_id": self.patient_id,
            "patient_name": self.patient.full_name if self.patient else None,
            "admitted_at": _iso(self.admitted_at),
            "expected_discharge": _iso(self.expected_discharge),
            "daily_rate": _float(self.daily_rate),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Bed {self.bed_number} {self.status}>'


class Alert(db.Model):
    __tablename__ = 'alerts'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    alert_type = db.Column(db.String(20), nullable=False)
    priority = db.Column(db.Integer, nullable=False, default=3)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    entity_type = db.Column(db.String(20), nullable=True)
    entity_id = db.Column(db.String(36), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active', index=True)
    acknowledged_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    acknowledged_at = db.Column(db.DateTime, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "priority": self.priority,
            "title": self.title,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "status": self.status,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": _iso(self.acknowledged_at),
            "resolved_by": self.resolved_by,
            "resolved_at": _iso(self.resolved_at),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Alert {self.alert_type} p{self.priority} {self.title}>'


class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)
    provider_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True) # This is the doctor/clinician
    start_datetime = db.Column(db.DateTime, nullable=False, index=True)
    end_datetime = db.Column(db.DateTime, nullable=False)
    appointment_type = db.Column(db.String(30), nullable=False, default='consultation')
    status = db.Column(
        db.String(30),
        nullable=False,
        default='scheduled',
        index=True,
        comment="Valid values: scheduled, confirmed, in_progress, completed, cancelled, no_show"
    )
    chief_complaint = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    patient = db.relationship(
        'Patient',
        backref=db.backref('appointments', lazy='dynamic', passive_deletes=True)
    )
    provider = db.relationship('User', foreign_keys=[provider_user_id])

    def to_dict(self, include_related=True):
        data = {
            "id": self.id,
            "patient_id": self.patient_id,
            "provider_user_id": self.provider_user_id,
            "start_datetime": _iso(self.start_datetime),
            "end_datetime": _iso(self.end_datetime),
            "appointment_type": self.appointment_type,
            "status": self.status,
            "chief_complaint": self.chief_complaint,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_related:
            if self.patient:
                data["patient_name"] = self.patient.full_name
                data["patient_number"] = self.patient.patient_number
            if self.provider:
                data["provider_name"] = self.provider.full_name
        return data

    def __repr__(self):
        return (
            f"<Appointment {self.id} | Patient {self.patient_id} | "
            f"Provider {self.provider_user_id} @ {self.start_datetime}>"
        )


class RevenueTransaction(db.Model):
    __tablename__ = 'revenue'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    transaction_date = db.Column(db.Date, nullable=False, default=_utc_date, index=True)
    revenue_type = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default='USD')
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id', ondelete='SET NULL'), nullable=True)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True)
    payment_method = db.Column(db.String(30), nullable=True)
    payment_status = db.Column(db.String(30), nullable=False, default='pending')
    invoice_number = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    patient = db.relationship('Patient')

    def to_dict(self):
        return {
            "id": self.id,
            "transaction_date": _iso(self.transaction_date),
            "revenue_type": self.revenue_type,
            "amount": _float(self.amount),
            "currency": self.currency,
            "patient_id": self.patient_id,
            "patient_name": self.patient.full_name if self.patient else None,
            "appointment_id": self.appointment_id,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "invoice_number": self.invoice_number,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f'<RevenueTransaction {self.revenue_type} {self.amount} {self.payment_status}>'


class ActivityLog(db.Model):
    """
    Staff-facing activity feed. Rows are written by the model event listeners
    in activities/listeners.py and by a few routes (sign-in, sign-out).
    """
    __tablename__ = 'activities'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    activity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(30), nullable=True)
    entity_id = db.Column(db.String(36), nullable=True)
    description = db.Column(db.Text, nullable=False)
    details = db.Column('metadata', db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, index=True)

    user = db.relationship('User')

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "activity_type": self.activity_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "metadata": self.details or {},
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f'<ActivityLog {self.activity_type} {self.entity_type}:{self.entity_id}>'
