from typerace import create_app, socketio, get_engine

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    try:
        socketio.run(app, debug=True)
    finally:
        with app.app_context():
            get_engine().shutdown()
