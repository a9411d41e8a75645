from models.account import Account
from models.token_record import TokenRecord
from models.db_storage import DBStorage

# Application-wide storage; the app factory connects and reloads it
storage = DBStorage()
