"""
Dispatch admin core
Config envelopes, schedule evaluation, connectivity probing and status reconciliation
"""

from .errors import (
    AuthenticationError,
    CollaboratorUnavailable,
    ConfigNotFound,
    ConnectivityError,
    ConnectivityReason,
    DecryptionFailure,
    DispatchError,
    InternalError,
    InvalidFormat,
    ValidationError,
)
from .models import (
    ConnectionConfig,
    DashboardSnapshot,
    EffectiveStatus,
    EmailStats,
    EncryptedEnvelope,
    IntervalUnit,
    MASK_SENTINEL,
    ProbeResult,
    ScheduleConfig,
    ServiceIntent,
    ServiceStatusRecord,
)
from .config_store import ConfigStore, EnvelopeCipher
from .schedule import ScheduleEvaluator, compute_next_run, is_active
from .connectivity import ConnectivityProbe, ProbeTimeouts, classify_error
from .status_store import ControlResult, ServiceController, ServiceStatusStore
from .reconciler import StatusReconciler, reconcile
from .auth import SessionTokenService
from .collaborators import EmailWorker, SigningService
