"""create_integration_tables

Revision ID: a3f1c2d4e5b6
Revises:
Create Date: 2026-10-19 10:12:31.408215

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3f1c2d4e5b6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('bot_channels',
    sa.Column('id', sa.String(length=64), nullable=False, comment='通道 ID (创建时生成)'),
    sa.Column('name', sa.String(length=200), nullable=False, comment='显示名称'),
    sa.Column('type', sa.String(length=20), nullable=False, comment='平台类型: console, feishu, dingtalk, wecom, telegram, discord'),
    sa.Column('bot_prefix', sa.String(length=100), nullable=False, comment='触发前缀 (唤醒词)'),
    sa.Column('config', sa.Text(), nullable=True, comment='平台配置 (JSON 格式)，例如 {appId, appSecret}'),
    sa.Column('enabled', sa.Boolean(), nullable=False, comment='是否启用'),
    sa.Column('position', sa.Integer(), nullable=False, comment='列表顺序'),
    sa.Column('updated_at', sa.DateTime(), nullable=False, comment='更新时间'),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('bot_channels', schema=None) as batch_op:
        batch_op.create_index('idx_bot_channels_type', ['type'], unique=False)
        batch_op.create_index('idx_bot_channels_position', ['position'], unique=False)

    op.create_table('mcp_clients',
    sa.Column('name', sa.String(length=200), nullable=False, comment='客户端名称 (唯一)'),
    sa.Column('transport', sa.String(length=10), nullable=False, comment='传输方式: stdio, sse'),
    sa.Column('command', sa.Text(), nullable=True, comment='启动命令 (stdio)'),
    sa.Column('args', sa.Text(), nullable=True, comment='命令参数 (JSON 数组)'),
    sa.Column('url', sa.String(length=500), nullable=True, comment='SSE 端点 URL'),
    sa.Column('env', sa.Text(), nullable=True, comment='进程环境变量 (JSON 格式)'),
    sa.Column('enabled', sa.Boolean(), nullable=False, comment='是否启用'),
    sa.Column('position', sa.Integer(), nullable=False, comment='列表顺序'),
    sa.Column('updated_at', sa.DateTime(), nullable=False, comment='更新时间'),
    sa.PrimaryKeyConstraint('name')
    )
    with op.batch_alter_table('mcp_clients', schema=None) as batch_op:
        batch_op.create_index('idx_mcp_clients_position', ['position'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('mcp_clients', schema=None) as batch_op:
        batch_op.drop_index('idx_mcp_clients_position')

    op.drop_table('mcp_clients')

    with op.batch_alter_table('bot_channels', schema=None) as batch_op:
        batch_op.drop_index('idx_bot_channels_position')
        batch_op.drop_index('idx_bot_channels_type')

    op.drop_table('bot_channels')
