from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CacheOption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=191, unique=True)),
                ("value", models.CharField(blank=True, default="", max_length=255)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Cache Option",
                "verbose_name_plural": "Cache Options",
                "db_table": "object_cache_options",
            },
        ),
        migrations.CreateModel(
            name="CacheEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("cache_group", models.CharField(max_length=255)),
                ("cache_key", models.CharField(max_length=255)),
                ("data", models.TextField()),
                ("ttl", models.CharField(default="-", max_length=32)),
                ("size", models.PositiveIntegerField(default=0)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Cache Entry",
                "verbose_name_plural": "Cache Entries",
                "db_table": "object_cache_entries",
            },
        ),
        migrations.AddConstraint(
            model_name="cacheentry",
            constraint=models.UniqueConstraint(fields=("cache_group", "cache_key"), name="objcache_group_key_uniq"),
        ),
        migrations.AddIndex(
            model_name="cacheentry",
            index=models.Index(fields=["expires_at"], name="objcache_expires_idx"),
        ),
    ]
