from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

ROLE_USER = "user"
ROLE_GUIDE = "guide"
ROLE_ADMIN = "admin"

TIPO_GUIA = "guia"
TIPO_VIAJANTE = "viajante"

VERIFICACAO_PENDENTE = "pendente"
VERIFICACAO_STATUS = ("pendente", "verificado", "rejeitado")

NIVEIS_DIFICULDADE = ("facil", "moderado", "dificil")

ROTEIRO_AGENDADO = "agendado"
ROTEIRO_CONFIRMADO = "confirmado"
ROTEIRO_CONCLUIDO = "concluido"
ROTEIRO_CANCELADO = "cancelado"
ROTEIRO_STATUS = (ROTEIRO_AGENDADO, ROTEIRO_CONFIRMADO, ROTEIRO_CONCLUIDO, ROTEIRO_CANCELADO)


class Pessoa(Base):
    __tablename__ = "pessoas"
    __table_args__ = (
        UniqueConstraint("email", name="uq_pessoa_email"),
        UniqueConstraint("cpf", name="uq_pessoa_cpf"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String, nullable=False)
    cpf = Column(String, nullable=False)
    email = Column(String, nullable=False)
    telefone = Column(String, nullable=True)
    data_nascimento = Column(Date, nullable=True)
    biografia = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)

    auth = relationship("Auth", back_populates="pessoa", uselist=False)
    guia = relationship("Guia", back_populates="pessoa", uselist=False)


class Auth(Base):
    __tablename__ = "auths"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pessoa_id = Column(Integer, ForeignKey("pessoas.id"), nullable=False, unique=True)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pessoa = relationship("Pessoa", back_populates="auth")


class Endereco(Base):
    __tablename__ = "enderecos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cep = Column(String, nullable=True)
    pais = Column(String, nullable=True)
    estado = Column(String, nullable=True)
    cidade = Column(String, nullable=True)
    bairro = Column(String, nullable=True)
    rua = Column(String, nullable=True)
    numero = Column(String, nullable=True)
    complemento = Column(String, nullable=True)


class Guia(Base):
    __tablename__ = "guias"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pessoa_id = Column(Integer, ForeignKey("pessoas.id"), nullable=False, unique=True)
    endereco_id = Column(Integer, ForeignKey("enderecos.id"), nullable=True)
    biografia = Column(Text, nullable=True)
    anos_experiencia = Column(Integer, nullable=True)
    avaliacao_media = Column(Float, nullable=False, default=0)
    numero_avaliacoes = Column(Integer, nullable=False, default=0)
    status_verificacao = Column(String, nullable=False, default=VERIFICACAO_PENDENTE)

    pessoa = relationship("Pessoa", back_populates="guia")
    endereco = relationship("Endereco")


class Destino(Base):
    __tablename__ = "destinos"
    __table_args__ = (UniqueConstraint("nome", "cidade", "estado", name="uq_destino_nome_cidade_estado"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String, nullable=False)
    estado = Column(String(2), nullable=False)
    cidade = Column(String, nullable=False)
    descricao = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    criador_id = Column(Integer, ForeignKey("pessoas.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    criador = relationship("Pessoa")
    passeios = relationship("Passeio", back_populates="destino")


class Passeio(Base):
    __tablename__ = "passeios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nome = Column(String, nullable=False)
    descricao = Column(Text, nullable=True)
    preco = Column(Numeric(10, 2), nullable=False)
    duracao_horas = Column(Float, nullable=True)
    nivel_dificuldade = Column(String, nullable=True)
    inclui_refeicao = Column(Boolean, nullable=False, default=False)
    inclui_transporte = Column(Boolean, nullable=False, default=False)
    capacidade_maxima = Column(Integer, nullable=True)
    destino_id = Column(Integer, ForeignKey("destinos.id"), nullable=False)
    pessoa_id = Column(Integer, ForeignKey("pessoas.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    destino = relationship("Destino", back_populates="passeios")
    criador = relationship("Pessoa")
    roteiros = relationship("Roteiro", back_populates="passeio")


class Roteiro(Base):
    __tablename__ = "roteiros"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passeio_id = Column(Integer, ForeignKey("passeios.id"), nullable=False)
    data = Column(Date, nullable=False)
    hora_inicio = Column(Time, nullable=False)
    hora_fim = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=ROTEIRO_AGENDADO)
    vagas_disponiveis = Column(Integer, nullable=False, default=0)
    criador_id = Column(Integer, ForeignKey("pessoas.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    passeio = relationship("Passeio", back_populates="roteiros")
    criador = relationship("Pessoa")
    avaliacoes = relationship("AvaliacaoRoteiro", back_populates="roteiro")


class AvaliacaoRoteiro(Base):
    __tablename__ = "avaliacoes_roteiro"
    __table_args__ = (UniqueConstraint("roteiro_id", "usuario_id", name="uq_avaliacao_roteiro_usuario"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    roteiro_id = Column(Integer, ForeignKey("roteiros.id"), nullable=False)
    usuario_id = Column(Integer, ForeignKey("pessoas.id"), nullable=False)
    nota = Column(Float, nullable=False)
    comentario = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    roteiro = relationship("Roteiro", back_populates="avaliacoes")
    usuario = relationship("Pessoa")
