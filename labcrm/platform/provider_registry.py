from labcrm.core.config import settings
from labcrm.platform.ports.patient_backend import PatientBackendPort
from labcrm.platform.ports.messaging import MessagingPort
from labcrm.platform.ports.alerts import AlertSinkPort
from labcrm.platform.adapters.alerts_log import LoggingAlertSink

class ProviderRegistry:
    _patient_backend: PatientBackendPort | None = None
    _messaging: MessagingPort | None = None

    @classmethod
    def patient_backend(cls) -> PatientBackendPort:
        if cls._patient_backend is None:
            if settings.PATIENT_STORE_PROVIDER == "local":
                from labcrm.platform.adapters.patients_local import LocalPatientBackend
                cls._patient_backend = LocalPatientBackend(settings.LOCAL_STORE_ROOT)
            else:
                from labcrm.platform.adapters.patients_db import DatabasePatientBackend
                cls._patient_backend = DatabasePatientBackend()
        return cls._patient_backend

    @classmethod
    def messaging(cls) -> MessagingPort:
        if cls._messaging is None:
            prov = (settings.MESSAGING_PROVIDER or "noop").lower()
            if prov == "zapi":
                from labcrm.platform.adapters.messaging_zapi import ZApiMessaging
                cls._messaging = ZApiMessaging()
            elif prov == "twilio":
                from labcrm.platform.adapters.messaging_twilio import TwilioWhatsAppMessaging
                cls._messaging = TwilioWhatsAppMessaging()
            else:
                from labcrm.platform.adapters.messaging_noop import NoopMessaging
                cls._messaging = NoopMessaging()
        return cls._messaging

    @classmethod
    def alert_sink(cls) -> AlertSinkPort:
        # one sink per engine so play counts stay per user
        return LoggingAlertSink()

    @classmethod
    def reset(cls) -> None:
        cls._patient_backend = None
        cls._messaging = None

registry = ProviderRegistry()
