import os


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-prod')
    
    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///culturefest.db')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    
    # Redis (live dashboard events); empty disables publishing
    REDIS_URL = os.getenv('REDIS_URL', '')
    
    # Media store (S3 compatible)
    MEDIA_BUCKET = os.getenv('MEDIA_BUCKET', '')
    MEDIA_REGION = os.getenv('MEDIA_REGION', 'ap-south-1')
    MEDIA_ENDPOINT_URL = os.getenv('MEDIA_ENDPOINT_URL') or None
    MEDIA_PUBLIC_URL = os.getenv('MEDIA_PUBLIC_URL', '')
    MEDIA_FOLDER = os.getenv('MEDIA_FOLDER', 'culturefest-uploads')
    
    # Upload limits (bytes)
    ID_CARD_MAX_BYTES = int(os.getenv('ID_CARD_MAX_BYTES', str(50 * 1024)))
    CIRCULAR_MAX_BYTES = int(os.getenv('CIRCULAR_MAX_BYTES', str(5 * 1024 * 1024)))
    HOME_IMAGE_MAX_BYTES = int(os.getenv('HOME_IMAGE_MAX_BYTES', str(2 * 1024 * 1024)))
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024
    
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    
    # Competition
    COMPETITION_NAME = os.getenv('COMPETITION_NAME', 'Interschool Cultural Competition')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SECRET_KEY = 'testing-secret-key'
    SQLALCHEMY_DATABASE_URI = os.getenv('SQLALCHEMY_DATABASE_URI', 'sqlite:///:memory:')
    REDIS_URL = ''
    MEDIA_BUCKET = 'test-bucket'
    MEDIA_PUBLIC_URL = 'https://media.example.test'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
