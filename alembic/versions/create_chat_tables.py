"""create chat tables

Revision ID: chat_001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'chat_001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    # Create chat_groups table
    op.create_table('chat_groups',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('context_app', sa.String(length=255), nullable=False),
        sa.Column('context_entity_type', sa.String(length=255), nullable=False),
        sa.Column('context_entity_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    
    # One group per context triplet
    op.create_index('idx_chat_group_context', 'chat_groups', ['context_app', 'context_entity_type', 'context_entity_id'], unique=True)
    op.create_index(op.f('ix_chat_groups_context_app'), 'chat_groups', ['context_app'])
    op.create_index(op.f('ix_chat_groups_context_entity_type'), 'chat_groups', ['context_entity_type'])
    op.create_index(op.f('ix_chat_groups_context_entity_id'), 'chat_groups', ['context_entity_id'])
    
    # Create chat_messages table
    op.create_table('chat_messages',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('chat_group_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('sender_user_id', sa.String(length=255), nullable=False),
        sa.Column('sender_name', sa.String(length=255), nullable=False),
        sa.Column('sender_company_id', sa.String(length=255), nullable=True),
        sa.Column('sender_company_name', sa.String(length=255), nullable=True),
        sa.Column('file_id', sa.String(length=255), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['chat_group_id'], ['chat_groups.id'], ),
        sa.CheckConstraint('text IS NOT NULL OR file_id IS NOT NULL', name='ck_chat_message_has_body'),
        sa.PrimaryKeyConstraint('id')
    )
    
    # Create indexes for chat_messages
    op.create_index('idx_chat_message_group_time', 'chat_messages', ['chat_group_id', 'created_at'])
    op.create_index('idx_chat_message_unread', 'chat_messages', ['chat_group_id', 'is_read'])
    op.create_index(op.f('ix_chat_messages_chat_group_id'), 'chat_messages', ['chat_group_id'])
    op.create_index(op.f('ix_chat_messages_sender_user_id'), 'chat_messages', ['sender_user_id'])

def downgrade() -> None:
    # Drop chat_messages table and indexes
    op.drop_index(op.f('ix_chat_messages_sender_user_id'), table_name='chat_messages')
    op.drop_index(op.f('ix_chat_messages_chat_group_id'), table_name='chat_messages')
    op.drop_index('idx_chat_message_unread', table_name='chat_messages')
    op.drop_index('idx_chat_message_group_time', table_name='chat_messages')
    op.drop_table('chat_messages')
    
    # Drop chat_groups table and indexes
    op.drop_index(op.f('ix_chat_groups_context_entity_id'), table_name='chat_groups')
    op.drop_index(op.f('ix_chat_groups_context_entity_type'), table_name='chat_groups')
    op.drop_index(op.f('ix_chat_groups_context_app'), table_name='chat_groups')
    op.drop_index('idx_chat_group_context', table_name='chat_groups')
    op.drop_table('chat_groups')
