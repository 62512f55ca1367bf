from flask import Blueprint, jsonify, request, current_app
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from typerace import db, get_engine
from typerace.schemas import CreateRaceRequest
from typerace.services.races.errors import PassageNotFound


races = Blueprint('races', __name__)


@races.route('/races', methods=['GET'])
def list_races():
    status = request.args.get('status')
    try:
        rows = get_engine().store.list_races(status)
    except SQLAlchemyError:
        current_app.logger.exception('[api] list races failed')
        return jsonify({'message': 'Failed to fetch races'}), 500
    return jsonify([race.to_dict() for race in rows])


@races.route('/races', methods=['POST'])
def create_race():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Invalid race data'}), 400
    cfg = current_app.config
    try:
        body = CreateRaceRequest.model_validate(data)
    except ValidationError:
        return jsonify({'message': 'Invalid race data'}), 400
    # Configured defaults only fill fields the client left out, whichever key style it used
    defaults = {
        'max_players': cfg.get('DEFAULT_MAX_PLAYERS', 4),
        'difficulty': cfg.get('DEFAULT_DIFFICULTY', 'medium'),
        'time_limit': cfg.get('DEFAULT_TIME_LIMIT_SEC', 180),
    }
    body = body.model_copy(update={k: v for k, v in defaults.items() if k not in body.model_fields_set})

    if body.max_players > int(cfg.get('MAX_PLAYERS_LIMIT', 8)):
        return jsonify({'message': 'Invalid race data'}), 400
    if body.time_limit > int(cfg.get('MAX_TIME_LIMIT_SEC', 600)):
        return jsonify({'message': 'Invalid race data'}), 400

    try:
        race = get_engine().store.create_race(
            name=body.name,
            max_players=body.max_players,
            difficulty=body.difficulty,
            time_limit=body.time_limit,
        )
    except PassageNotFound as exc:
        current_app.logger.info(f"[api] create race rejected: {exc}")
        return jsonify({'message': 'Invalid race data'}), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception('[api] create race failed')
        return jsonify({'message': 'Failed to create race'}), 500

    current_app.logger.info(f"[race-create] race={race.id} difficulty={race.difficulty} max={race.max_players}")
    return jsonify(race.to_dict()), 201


@races.route('/races/<int:race_id>', methods=['GET'])
def get_race(race_id):
    store = get_engine().store
    try:
        race = store.get_race(race_id)
        if race is None:
            return jsonify({'message': 'Race not found'}), 404
        participants = store.participants_of(race_id)
    except SQLAlchemyError:
        current_app.logger.exception('[api] get race failed')
        return jsonify({'message': 'Failed to fetch race'}), 500
    return jsonify({
        'race': race.to_dict(),
        'participants': [p.to_dict() for p in participants],
    })


@races.route('/text-passages', methods=['GET'])
def list_text_passages():
    try:
        passages = get_engine().store.list_passages()
    except SQLAlchemyError:
        current_app.logger.exception('[api] list passages failed')
        return jsonify({'message': 'Failed to fetch text passages'}), 500
    return jsonify([p.to_dict() for p in passages])
