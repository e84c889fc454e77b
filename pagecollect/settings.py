# Scrapy settings for chapter download crawls
BOT_NAME = "pagecollect"

SPIDER_MODULES = ["pagecollect.spiders"]
NEWSPIDER_MODULE = "pagecollect.spiders"

# Chapter pages are not listed in robots.txt friendly places on most sites
ROBOTSTXT_OBEY = False

# Configure maximum concurrent requests
CONCURRENT_REQUESTS = 8
CONCURRENT_REQUESTS_PER_DOMAIN = 4

# Configure a delay for requests, overridden per site profile
DOWNLOAD_DELAY = 0.05
RANDOMIZE_DOWNLOAD_DELAY = True
DOWNLOAD_TIMEOUT = 10

# Disable Telnet Console
TELNETCONSOLE_ENABLED = False

# Override the default request headers
DEFAULT_REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9,ja;q=0.8,en;q=0.7",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

# Enable or disable spider middlewares
SPIDER_MIDDLEWARES = {
    "pagecollect.middlewares.ErrorHandlingMiddleware": 543,
}

# Configure item pipelines
ITEM_PIPELINES = {
    "pagecollect.pipelines.ValidationPipeline": 100,
    "pagecollect.pipelines.IllustrationPipeline": 200,
}

# Illustrations, FILES_STORE is set per book
FILES_URLS_FIELD = "file_urls"
FILES_RESULT_FIELD = "files"
MEDIA_ALLOW_REDIRECTS = True

# Enable and configure HTTP caching
HTTPCACHE_ENABLED = False

# Set settings whose default value is deprecated to a future-proof value
REQUEST_FINGERPRINTER_IMPLEMENTATION = "2.7"
TWISTED_REACTOR = "twisted.internet.asyncioreactor.AsyncioSelectorReactor"
FEED_EXPORT_ENCODING = "utf-8"

# Retry settings, RETRY_TIMES is set from the retry count option
RETRY_ENABLED = True
RETRY_TIMES = 3
RETRY_HTTP_CODES = [500, 502, 503, 504, 522, 524, 408, 429]

# Logging
LOG_LEVEL = "INFO"
