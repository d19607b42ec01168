"""Initial schema: patient records, embeddings, insights, conversations

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Vector columns carry no fixed dimension; the embedding size is a runtime
# setting, so no HNSW/IVFFlat index can be declared here.


def _uuid_pk():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _patient_fk(nullable: bool = False, ondelete: str = 'CASCADE', name: str = 'patient_id'):
    return sa.Column(name, postgresql.UUID(as_uuid=True),
                     sa.ForeignKey('users.id', ondelete=ondelete),
                     nullable=nullable, index=True)


def _created_at():
    return sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    # Create enum types
    user_status = postgresql.ENUM('active', 'inactive', 'suspended', name='userstatus', create_type=False)
    intake_status = postgresql.ENUM('pending', 'taken', 'missed', 'skipped', name='intakestatus', create_type=False)
    insight_type = postgresql.ENUM(
        'medication_adherence', 'health_trend', 'recommendation', 'alert', 'pattern_detection',
        name='insighttype', create_type=False
    )
    insight_priority = postgresql.ENUM('low', 'medium', 'high', 'critical', name='insightpriority', create_type=False)
    insight_category = postgresql.ENUM(
        'medication', 'vitals', 'lifestyle', 'general',
        name='insightcategory', create_type=False
    )
    message_role = postgresql.ENUM('user', 'assistant', name='messagerole', create_type=False)

    for enum in (user_status, intake_status, insight_type, insight_priority, insight_category, message_role):
        enum.create(op.get_bind(), checkfirst=True)

    # Users
    op.create_table(
        'users',
        _uuid_pk(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('status', user_status, nullable=False, server_default='active'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Caregiver notes
    op.create_table(
        'caregiver_notes',
        _uuid_pk(),
        _patient_fk(),
        _patient_fk(nullable=True, ondelete='SET NULL', name='caregiver_id'),
        sa.Column('note_text', sa.Text(), nullable=False),
        sa.Column('embedding', Vector(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_caregiver_notes_created_at', 'caregiver_notes', ['created_at'])

    # Medications, schedules and intakes
    op.create_table(
        'medications',
        _uuid_pk(),
        _patient_fk(),
        sa.Column('medication_name', sa.String(255), nullable=False),
        sa.Column('dosage', sa.String(100), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('notes_embedding', Vector(), nullable=True),
        _created_at(),
    )
    op.create_table(
        'med_schedules',
        _uuid_pk(),
        sa.Column('medication_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('medications.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('time_of_day', sa.Time(), nullable=True),
        _created_at(),
    )
    op.create_table(
        'med_intakes',
        _uuid_pk(),
        sa.Column('schedule_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('med_schedules.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('due_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('status', intake_status, nullable=False, server_default='pending'),
        sa.Column('taken_at', sa.DateTime(), nullable=True),
    )

    # Vital measurements
    op.create_table(
        'vital_measurements',
        _uuid_pk(),
        _patient_fk(),
        sa.Column('kind_code', sa.String(20), nullable=False, index=True),
        sa.Column('value1', sa.Float(), nullable=True),
        sa.Column('value2', sa.Float(), nullable=True),
        sa.Column('value_text', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('notes_embedding', Vector(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False, index=True),
        _created_at(),
    )

    # Lifestyle logs
    op.create_table(
        'diet_logs',
        _uuid_pk(),
        _patient_fk(),
        sa.Column('log_date', sa.Date(), nullable=False, index=True),
        sa.Column('meal_type', sa.String(20), nullable=True),
        sa.Column('food_items', sa.Text(), nullable=True),
        sa.Column('calories', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('food_items_embedding', Vector(), nullable=True),
        sa.Column('notes_embedding', Vector(), nullable=True),
        _created_at(),
    )
    op.create_table(
        'exercise_logs',
        _uuid_pk(),
        _patient_fk(),
        sa.Column('log_date', sa.Date(), nullable=False, index=True),
        sa.Column('exercise_type', sa.String(50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('calories_burned', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('description_embedding', Vector(), nullable=True),
        sa.Column('notes_embedding', Vector(), nullable=True),
        _created_at(),
    )

    # Documents and chunks
    op.create_table(
        'user_documents',
        _uuid_pk(),
        _patient_fk(),
        sa.Column('title', sa.String(500), nullable=True),
        _created_at(),
    )
    op.create_table(
        'document_chunks',
        _uuid_pk(),
        sa.Column('document_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('user_documents.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        _patient_fk(),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('chunk_text', sa.Text(), nullable=False),
        sa.Column('chunk_embedding', Vector(), nullable=True),
        sa.Column('token_count', sa.Integer(), nullable=False),
        sa.Column('start_char', sa.Integer(), nullable=False),
        sa.Column('end_char', sa.Integer(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('document_id', 'chunk_index', name='uq_document_chunks_index'),
    )

    # Insights
    op.create_table(
        'ai_insights',
        _uuid_pk(),
        _patient_fk(name='user_id'),
        _patient_fk(),
        sa.Column('insight_type', insight_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('priority', insight_priority, nullable=False, server_default='medium'),
        sa.Column('category', insight_category, nullable=True),
        sa.Column('recommendations', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('embedding', Vector(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('generated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True, index=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_ai_insights_user_archived', 'ai_insights', ['user_id', 'is_archived', 'generated_at'])

    # Conversations
    op.create_table(
        'ai_conversations',
        _uuid_pk(),
        _patient_fk(name='user_id'),
        sa.Column('patient_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('users.id', ondelete='SET NULL'),
                  nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        'ai_conversation_messages',
        _uuid_pk(),
        sa.Column('conversation_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('ai_conversations.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('role', message_role, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        _created_at(),
    )

    # Late-bound configuration
    op.create_table(
        'app_config',
        sa.Column('config_key', sa.String(100), primary_key=True),
        sa.Column('config_value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.execute("""
        INSERT INTO app_config (config_key, config_value) VALUES
            ('ai_embedding_model', 'text-embedding-3-small'),
            ('ai_embedding_dimensions', '1536'),
            ('ai_semantic_search_threshold', '0.7'),
            ('ai_insight_generation_enabled', 'true')
    """)


def downgrade() -> None:
    op.drop_table('app_config')
    op.drop_table('ai_conversation_messages')
    op.drop_table('ai_conversations')
    op.drop_index('ix_ai_insights_user_archived', table_name='ai_insights')
    op.drop_table('ai_insights')
    op.drop_table('document_chunks')
    op.drop_table('user_documents')
    op.drop_table('exercise_logs')
    op.drop_table('diet_logs')
    op.drop_table('vital_measurements')
    op.drop_table('med_intakes')
    op.drop_table('med_schedules')
    op.drop_table('medications')
    op.drop_index('ix_caregiver_notes_created_at', table_name='caregiver_notes')
    op.drop_table('caregiver_notes')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    for name in ('messagerole', 'insightcategory', 'insightpriority', 'insighttype', 'intakestatus', 'userstatus'):
        op.execute(f'DROP TYPE IF EXISTS {name}')
