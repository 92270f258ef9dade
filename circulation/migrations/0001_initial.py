import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LoanStatus',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(choices=[('active', 'Active'), ('returned', 'Returned'), ('overdue', 'Overdue'), ('lost', 'Lost')], max_length=20, unique=True)),
                ('description', models.CharField(max_length=200)),
                ('color', models.CharField(default='#007bff', max_length=7, validators=[django.core.validators.RegexValidator('^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$', 'Color must be a hex code')])),
                ('active', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name_plural': 'loan statuses',
            },
        ),
        migrations.CreateModel(
            name='PersonType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True)),
                ('description', models.CharField(blank=True, max_length=200)),
                ('active', models.BooleanField(default=True)),
            ],
        ),
        migrations.CreateModel(
            name='Person',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('document_number', models.CharField(max_length=20, unique=True)),
                ('grade', models.CharField(blank=True, max_length=20)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('person_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='persons', to='circulation.persontype')),
            ],
            options={
                'ordering': ['last_name', 'first_name'],
            },
        ),
        migrations.CreateModel(
            name='Resource',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=300)),
                ('kind', models.CharField(choices=[('book', 'Book'), ('game', 'Game'), ('map', 'Map'), ('other', 'Other')], default='book', max_length=10)),
                ('isbn', models.CharField(blank=True, db_index=True, max_length=17)),
                ('total_quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('current_loans_count', models.PositiveIntegerField(default=0)),
                ('total_loans', models.PositiveIntegerField(default=0)),
                ('last_loan_date', models.DateTimeField(blank=True, null=True)),
                ('available', models.BooleanField(default=True)),
                ('condition', models.CharField(choices=[('good', 'Good'), ('deteriorated', 'Deteriorated'), ('damaged', 'Damaged'), ('lost', 'Lost')], default='good', max_length=20)),
                ('notes', models.TextField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['title'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('total_quantity__gte', 1)), name='resource_total_quantity_positive'),
                    models.CheckConstraint(condition=models.Q(('current_loans_count__lte', models.F('total_quantity'))), name='resource_loans_within_total'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Loan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('loan_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('due_date', models.DateTimeField()),
                ('returned_date', models.DateTimeField(blank=True, null=True)),
                ('observations', models.TextField(blank=True, default='')),
                ('renewed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('loaned_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans_registered', to=settings.AUTH_USER_MODEL)),
                ('person', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='circulation.person')),
                ('renewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='loans_renewed', to=settings.AUTH_USER_MODEL)),
                ('resource', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='circulation.resource')),
                ('returned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='loans_received', to=settings.AUTH_USER_MODEL)),
                ('status', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to='circulation.loanstatus')),
            ],
            options={
                'ordering': ['-loan_date'],
                'indexes': [
                    models.Index(fields=['person', 'returned_date'], name='loan_person_outstanding_idx'),
                    models.Index(fields=['resource', 'returned_date'], name='loan_resource_outstanding_idx'),
                    models.Index(fields=['status', 'due_date'], name='loan_status_due_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 1)), name='loan_quantity_positive'),
                ],
            },
        ),
    ]
