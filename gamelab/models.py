from gamelab import db
import json
import string
import random
import time


class SessionPlayer(db.Model):
    __tablename__ = 'session_player'
    __table_args__ = (db.UniqueConstraint('session_id', 'player_id', name='uq_session_player'),)
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(8), db.ForeignKey('game_session.id'), nullable=False, index=True)
    player_id = db.Column(db.String(128), nullable=False)
    display_name = db.Column(db.String(64), nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    joined_at = db.Column(db.Float, default=time.time, nullable=False)
    session = db.relationship('GameSession', back_populates='players')

    def to_dict(self):
        return {
            'id': self.player_id,
            'display_name': self.display_name,
            'is_host': self.is_host,
            'joined_at': self.joined_at,
        }


def generate_session_code(length=6):
    """Generate a unique, short session id."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not GameSession.query.filter_by(id=code).first():
            return code


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(8), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), default='waiting', nullable=False)  # waiting, playing, finished
    created_by = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.Float, default=time.time, nullable=False)
    is_tournament = db.Column(db.Boolean, default=False, nullable=False)
    game_id = db.Column(db.String(64), nullable=False)
    # JSON documents
    game_state_json = db.Column('game_state', db.Text, nullable=True)
    tournament_results_json = db.Column('tournament_results', db.Text, nullable=True)
    player_matches_json = db.Column('player_matches', db.Text, nullable=True)
    # Optimistic concurrency token; every UPDATE is conditional on it
    version = db.Column(db.Integer, nullable=False)
    players = db.relationship(
        'SessionPlayer',
        back_populates='session',
        cascade='all, delete-orphan',
        order_by='SessionPlayer.id',
    )

    __mapper_args__ = {'version_id_col': version}

    def __init__(self, **kwargs):
        super(GameSession, self).__init__(**kwargs)
        if not self.id:
            self.id = generate_session_code()

    @property
    def game_state(self):
        return json.loads(self.game_state_json) if self.game_state_json else None

    @game_state.setter
    def game_state(self, value):
        self.game_state_json = json.dumps(value) if value is not None else None

    @property
    def tournament_results(self):
        return json.loads(self.tournament_results_json) if self.tournament_results_json else None

    @tournament_results.setter
    def tournament_results(self, value):
        self.tournament_results_json = json.dumps(value) if value is not None else None

    @property
    def player_matches(self):
        return json.loads(self.player_matches_json) if self.player_matches_json else None

    @player_matches.setter
    def player_matches(self, value):
        self.player_matches_json = json.dumps(value) if value is not None else None

    @property
    def player_ids(self):
        return [p.player_id for p in self.players]

    def get_player(self, player_id):
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    @property
    def host(self):
        for p in self.players:
            if p.is_host:
                return p
        return None

    def to_dict(self, include_game_state=True):
        data = {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'is_tournament': self.is_tournament,
            'players': {p.player_id: p.to_dict() for p in self.players},
            'game_data': {'game_id': self.game_id},
            'version': self.version,
        }
        if include_game_state:
            data['game_data']['game_state'] = self.game_state
        if self.is_tournament:
            data['tournament_results'] = self.tournament_results or {}
            data['player_matches'] = self.player_matches or {}
        return data
