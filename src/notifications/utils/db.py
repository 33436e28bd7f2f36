from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _register_models(domain: Domain, provider_name: str) -> None:
    """Touch every repository DAO so its SQLAlchemy model is registered.

    noqa: B018 suppresses the useless-expression warning on `_dao`.
    """
    records = [
        *domain.registry.aggregates.values(),
        *domain.registry.entities.values(),
        *domain.registry.projections.values(),
    ]
    for record in records:
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Create tables for notifications, channel entries, preferences and projections"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                _register_models(domain, provider.name)
                provider._metadata.create_all(engine)


def drop_db(domain: Domain):
    """Drop every table created by setup_db"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                _register_models(domain, provider.name)
                provider._metadata.drop_all(engine)
