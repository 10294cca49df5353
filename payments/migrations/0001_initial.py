from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(max_length=64, unique=True)),
                ('provider', models.CharField(choices=[('midtrans', 'Midtrans'), ('doku', 'DOKU')], default='midtrans', max_length=16)),
                ('provider_reference', models.CharField(max_length=64, unique=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('denied', 'Denied'), ('cancelled', 'Cancelled'), ('expired', 'Expired'), ('refunded', 'Refunded'), ('fraud_review', 'Fraud review'), ('unknown', 'Unknown')], db_index=True, default='pending', max_length=16)),
                ('gross_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('currency', models.CharField(default='IDR', max_length=8)),
                ('customer_email', models.EmailField(blank=True, default='', max_length=254)),
                ('transaction_id', models.CharField(blank=True, default='', max_length=128)),
                ('payment_type', models.CharField(blank=True, default='', max_length=64)),
                ('provider_status', models.CharField(blank=True, default='', max_length=32)),
                ('fraud_status', models.CharField(blank=True, default='', max_length=32)),
                ('amount_refunded', models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ('payment_instructions', models.JSONField(blank=True, null=True)),
                ('payment_metadata', models.JSONField(blank=True, null=True)),
                ('last_webhook_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='WebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(max_length=16)),
                ('reference', models.CharField(db_index=True, max_length=64)),
                ('provider_status', models.CharField(blank=True, default='', max_length=32)),
                ('internal_status', models.CharField(blank=True, default='', max_length=16)),
                ('outcome', models.CharField(choices=[('applied', 'Applied'), ('duplicate', 'Duplicate'), ('ignored', 'Ignored'), ('not_found', 'Order not found'), ('write_failed', 'Write failed')], db_index=True, max_length=16)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('error', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('replayed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'ordering': ('created_at', 'id'),
            },
        ),
    ]
