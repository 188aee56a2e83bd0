from streamproxy.__main__ import main
from streamproxy.app import create_app

app = create_app()

if __name__ == "__main__":
    main()
