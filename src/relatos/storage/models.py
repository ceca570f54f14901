"""SQLAlchemy mappings for the reporting database.

Both objects are owned by the main application's schema: the agent only
reads them and never creates or migrates them.
"""

from sqlalchemy import BigInteger, Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class RelatoConsulta(Base):
    """Denormalized, read-only view of relatos (safety deviation reports)."""

    __tablename__ = "vw_relatos_consulta"

    id = Column(UUID(as_uuid=False), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    contrato = Column(String, nullable=False)
    status = Column(String)
    potencial = Column(String)
    local = Column(Text)
    descricao = Column(Text)
    acao = Column(Text)
    observacao = Column(Text)
    ver_agir = Column(Boolean)
    acao_cliente = Column(Boolean)
    gerou_recusa = Column(Boolean)
    data_limite = Column(Date)
    equipe_id = Column(UUID(as_uuid=False))
    natureza_id = Column(Integer)
    tipo_id = Column(Integer)
    riscoassociado_id = Column(Integer)
    natureza_nome = Column(String)
    tipo_nome = Column(String)
    risco_associado_nome = Column(String)
    equipe_nome = Column(String)
    autor_nome = Column(String)
    responsavel = Column(BigInteger)


class UsuarioContrato(Base):
    """Which contracts each user (by matricula) is allowed to see."""

    __tablename__ = "usuario_contratos"

    matricula_usuario = Column(BigInteger, primary_key=True)
    codigo_contrato = Column(String, primary_key=True)
