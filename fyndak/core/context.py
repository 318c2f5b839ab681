"""
Application context

Everything a request handler or worker needs from the outside world,
built once per application and passed explicitly.
"""
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fyndak.core.config import Settings
from fyndak.infrastructure.database import build_engine, build_session_factory
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.services.payment_intent import SwishPaymentIntent


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    notifier: ChangeNotifier
    payment_intents: SwishPaymentIntent

    def session(self) -> Session:
        return self.session_factory()


def build_context(settings: Settings) -> AppContext:
    """Wire store, notifier and payment collaborator from settings"""
    engine = build_engine(settings)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        notifier=ChangeNotifier(settings.REDIS_URL if settings.REALTIME_ENABLED else None),
        payment_intents=SwishPaymentIntent(
            merchant_phone=settings.SWISH_MERCHANT_PHONE,
            reference_prefix=settings.PAYMENT_REFERENCE_PREFIX,
        ),
    )
