from gameshow import db
from datetime import datetime
import json
import uuid


def new_id() -> str:
    return uuid.uuid4().hex


class Quiz(db.Model):
    """Quiz definition owned by the authoring side; sessions only read it."""
    __tablename__ = 'quiz'
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    title = db.Column(db.String(200), nullable=False)
    creator_id = db.Column(db.String(128), nullable=True)
    time_per_question = db.Column(db.Integer, nullable=True)
    questions = db.Column(db.Text, nullable=False, default='[]')  # JSON list in authoring shape

    def question_list(self):
        return json.loads(self.questions or '[]')


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    pin = db.Column(db.String(6), nullable=False, index=True)
    # Mirrors pin while the session is live, NULL once ended; unique among live sessions
    live_pin = db.Column(db.String(6), unique=True, nullable=True)
    status = db.Column(db.String(16), nullable=False, default='lobby')  # lobby, playing, ended
    end_reason = db.Column(db.String(16), nullable=True)  # completed, abandoned
    host_id = db.Column(db.String(128), nullable=False)
    game_id = db.Column(db.String(64), db.ForeignKey('quiz.id'), nullable=False)
    num_questions = db.Column(db.Integer, nullable=False, default=0)
    current_question_index = db.Column(db.Integer, nullable=False, default=0)
    question_phase = db.Column(db.String(16), nullable=True)  # active, closed
    question_started_at = db.Column(db.Float, nullable=True)
    phase_deadline = db.Column(db.Float, nullable=True)
    settings = db.Column(db.Text, nullable=False, default='{}')
    question_order = db.Column(db.Text, nullable=True)  # JSON list of quiz question positions
    answer_orders = db.Column(db.Text, nullable=True)  # JSON list of option permutations, one per position
    roster_count = db.Column(db.Integer, nullable=False, default=0)
    answers_received = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    players = db.relationship('Player', back_populates='session', order_by='Player.join_seq')

    def settings_dict(self):
        return json.loads(self.settings or '{}')

    def order(self):
        if self.question_order:
            return json.loads(self.question_order)
        return list(range(self.num_questions))

    def option_order(self, index):
        if not self.answer_orders:
            return None
        orders = json.loads(self.answer_orders)
        return orders[index] if 0 <= index < len(orders) else None

    def to_dict(self):
        return {
            'id': self.id,
            'pin': self.pin,
            'status': self.status,
            'end_reason': self.end_reason,
            'game_id': self.game_id,
            'num_questions': self.num_questions,
            'current_question_index': self.current_question_index,
            'question_phase': self.question_phase,
            'question_started_at': self.question_started_at,
            'phase_deadline': self.phase_deadline,
            'settings': self.settings_dict(),
            'player_count': self.roster_count,
            'answers_received': self.answers_received,
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'players': [p.to_dict() for p in self.players],
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    session_id = db.Column(db.String(32), db.ForeignKey('game_session.id'), nullable=False, index=True)
    display_name = db.Column(db.String(20), nullable=False)
    client_ref = db.Column(db.String(128), nullable=True)
    join_seq = db.Column(db.Integer, nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)
    score = db.Column(db.Integer, nullable=False, default=0)
    score_reached_at = db.Column(db.Float, nullable=True)
    final_rank = db.Column(db.Integer, nullable=True)
    session = db.relationship('GameSession', back_populates='players')

    __table_args__ = (
        db.UniqueConstraint('session_id', 'display_name', name='uq_player_name_per_session'),
        db.UniqueConstraint('session_id', 'join_seq', name='uq_player_seq_per_session'),
        db.UniqueConstraint('session_id', 'client_ref', name='uq_player_client_per_session'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'display_name': self.display_name,
            'join_seq': self.join_seq,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None,
            'score': self.score,
            'final_rank': self.final_rank,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(32), db.ForeignKey('game_session.id'), nullable=False)
    player_id = db.Column(db.String(32), db.ForeignKey('player.id'), nullable=False)
    question_index = db.Column(db.Integer, nullable=False)
    choice = db.Column(db.Text, nullable=False)  # JSON list of original option indices
    elapsed = db.Column(db.Float, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.Float, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('session_id', 'player_id', 'question_index', name='uq_answer_per_question'),
    )
