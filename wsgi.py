import os
from autotranslate import create_app

app = create_app()

if __name__ == '__main__':
    port = int(os.getenv('PORT', 8001))

    # Never run debug mode in production
    debug_mode = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes')

    app.run(host=os.getenv('HOST', '127.0.0.1'), port=port, debug=debug_mode)
