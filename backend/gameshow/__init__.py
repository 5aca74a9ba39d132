from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import OperationalError
import json
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

DEMO_QUIZ = {
    'id': 'demo-capitals',
    'title': 'World Capitals',
    'timePerQuestion': 20,
    'questions': [
        {'question': 'Capital of France?', 'answers': ['Paris', 'Lyon', 'Nice', 'Lille'],
         'correctAnswers': [True, False, False, False], 'timeLimit': 20, 'points': 'standard'},
        {'question': 'Capital of Japan?', 'answers': ['Osaka', 'Tokyo', 'Kyoto', 'Nagoya'],
         'correctAnswers': [False, True, False, False], 'timeLimit': 20, 'points': 'standard'},
        {'question': 'Capital of Canada?', 'answers': ['Toronto', 'Vancouver', 'Ottawa', 'Montreal'],
         'correctAnswers': [False, False, True, False], 'timeLimit': 20, 'points': 'double'},
    ],
}


def import_quiz_document(doc):
    """Upsert one quiz in the authoring document shape."""
    from gameshow.models import Quiz

    if not doc.get('title') or not isinstance(doc.get('questions'), list):
        raise ValueError('quiz needs a title and a questions list')
    quiz = db.session.get(Quiz, doc['id']) if doc.get('id') else None
    if quiz is None:
        quiz = Quiz(id=doc.get('id')) if doc.get('id') else Quiz()
    quiz.title = doc['title']
    quiz.creator_id = doc.get('creatorId')
    quiz.time_per_question = doc.get('timePerQuestion')
    quiz.questions = json.dumps(doc['questions'])
    db.session.add(quiz)
    return quiz


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from gameshow.main import main
    flask_app.register_blueprint(main)

    from gameshow.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from gameshow.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from gameshow.main import Identity

    @login_manager.request_loader
    def load_identity(request):
        # Identity comes from the external auth provider; we only carry its opaque id
        user_id = (request.headers.get('X-User-Id') or '').strip()
        return Identity(user_id) if user_id else None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Sign in or request a guest id first'}), 401

    from gameshow.services.sessions.results import AllocationExhausted, StoreUnavailable

    @flask_app.errorhandler(AllocationExhausted)
    def handle_allocation_exhausted(exc):
        flask_app.logger.warning(f"[pin-exhausted] {exc}")
        response = jsonify({'error': 'Could not allocate a game PIN, please try again', 'reason': 'allocation_exhausted'})
        response.status_code = 503
        response.headers['Retry-After'] = '1'
        return response

    @flask_app.errorhandler(StoreUnavailable)
    @flask_app.errorhandler(OperationalError)
    def handle_store_unavailable(exc):
        flask_app.logger.error(f"[store-unavailable] {exc}")
        db.session.rollback()
        return jsonify({'error': 'The game service is temporarily unavailable', 'reason': 'store_unavailable'}), 503

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            import_quiz_document(DEMO_QUIZ)
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('quiz-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def quiz_import_command(path):
        """Loads quiz definitions (one object or a list) from a JSON file."""
        with open(path, encoding='utf-8') as fh:
            data = json.load(fh)
        docs = data if isinstance(data, list) else [data]
        with flask_app.app_context():
            for doc in docs:
                quiz = import_quiz_document(doc)
                db.session.flush()
                print(f'Imported quiz {quiz.id}: {quiz.title}')
            db.session.commit()

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(quiz_import_command)

    return flask_app
